import json
import logging
from typing import Any, Dict, Optional, Protocol

import redis.asyncio as redis
from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, user_id: str, event_name: str, payload: Dict[str, Any]) -> None: ...


def tenant_channel(prefix: str, user_id: Any) -> str:
    return f"{prefix}:{user_id}"


class RedisNotifier:
    """Publish tenant-scoped dashboard events on redis pub/sub. Best effort."""

    def __init__(self, client: Optional[redis.Redis], channel_prefix: str = "events"):
        self.client = client
        self.channel_prefix = channel_prefix

    async def notify(self, user_id: str, event_name: str, payload: Dict[str, Any]) -> None:
        if self.client is None:
            return
        message = json.dumps(jsonable_encoder({"type": event_name, "payload": payload}))
        try:
            await self.client.publish(tenant_channel(self.channel_prefix, user_id), message)
        except (RedisError, OSError):
            logger.warning("Failed to publish %s for user %s", event_name, user_id, exc_info=True)
