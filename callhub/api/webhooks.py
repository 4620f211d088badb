import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request

from callhub.core.deps import get_webhook_queue
from callhub.schemas import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhooks"])


async def read_payload(request: Request):
    body = await request.body()
    try:
        return json.loads(body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON (%s bytes)", len(body))
        return {"raw": body.decode("utf-8", errors="replace")}


@router.post("/vapi", response_model=WebhookAck)
async def receive_vapi_webhook(
    request: Request, queue: asyncio.Queue = Depends(get_webhook_queue)
) -> WebhookAck:
    """Acknowledge first; processing happens on the webhook worker."""
    try:
        payload = await read_payload(request)
        queue.put_nowait(payload)
    except asyncio.QueueFull:
        logger.error("Webhook queue is full; delivery dropped")
    except Exception:
        logger.exception("Failed to enqueue webhook delivery")
    return WebhookAck()
