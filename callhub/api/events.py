import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from jose import JWTError

from callhub.core.config import settings
from callhub.core.security import decode_token
from callhub.services.notifier import tenant_channel

router = APIRouter(tags=["events"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008)
        return
    try:
        payload = decode_token(token)
    except JWTError:
        await websocket.close(code=1008)
        return
    user_id = payload.get("sub")
    if not user_id:
        await websocket.close(code=1008)
        return
    await websocket.accept()
    redis_client = getattr(websocket.app.state, "redis", None)
    channel = tenant_channel(settings.events_channel, user_id)
    pubsub = redis_client.pubsub() if redis_client else None
    if pubsub:
        await pubsub.subscribe(channel)
    try:
        while True:
            if pubsub:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message.get("data"):
                    await websocket.send_text(message["data"])
            await asyncio.sleep(0.2)
    except WebSocketDisconnect:
        pass
    finally:
        if pubsub:
            await pubsub.unsubscribe(channel)
            await pubsub.close()
