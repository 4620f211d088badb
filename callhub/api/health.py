import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from callhub.core.database import engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    checks = {"database": "ok", "redis": "ok"}
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Readiness: database unreachable", exc_info=True)
        checks["database"] = "unavailable"

    redis_client = request.app.state.redis
    if redis_client is None:
        checks["redis"] = "not started"
    else:
        try:
            await redis_client.ping()
        except (RedisError, OSError):
            logger.warning("Readiness: redis unreachable", exc_info=True)
            checks["redis"] = "unavailable"

    queue = request.app.state.webhook_queue
    body = {
        "status": "ready" if all(value == "ok" for value in checks.values()) else "degraded",
        "checks": checks,
        "webhook_queue": queue.qsize() if queue is not None else None,
    }
    return JSONResponse(body, status_code=200 if body["status"] == "ready" else 503)
