from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class WebhookAck(BaseModel):
    success: bool = True


class WebhookLogOut(BaseModel):
    id: int
    type: str
    payload: Optional[Any] = None
    processed: bool
    error: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WebhookLogList(BaseModel):
    success: bool = True
    logs: List[WebhookLogOut]
