from fastapi import APIRouter, Depends, Query

from callhub.core.deps import get_storage, require_admin
from callhub.schemas import WebhookLogList, WebhookLogOut
from callhub.services.storage import SqlAlchemyStorage

router = APIRouter(prefix="/api/webhook-logs", tags=["webhooks"])


@router.get("", response_model=WebhookLogList)
async def list_webhook_logs(
    limit: int = Query(20, ge=1, le=500),
    storage: SqlAlchemyStorage = Depends(get_storage),
    admin: dict = Depends(require_admin),
) -> WebhookLogList:
    logs = await storage.list_webhook_logs(limit)
    return WebhookLogList(logs=[WebhookLogOut.model_validate(entry) for entry in logs])
