import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI
from sqlalchemy.exc import OperationalError

from callhub.api import events, health, webhook_logs, webhooks
from callhub.core.config import settings
from callhub.core.database import Base, SessionLocal, engine
from callhub.services.notifier import RedisNotifier
from callhub.services.worker import WebhookWorker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(webhook_logs.router)
app.include_router(events.router)

app.state.webhook_queue = None
app.state.redis = None

worker: Optional[WebhookWorker] = None
worker_task: Optional[asyncio.Task] = None


@app.on_event("startup")
async def on_startup() -> None:
    await wait_for_database()
    Base.metadata.create_all(bind=engine)
    global worker, worker_task
    app.state.webhook_queue = asyncio.Queue(maxsize=settings.webhook_queue_maxsize)
    app.state.redis = redis.from_url(settings.redis_url, decode_responses=True)
    notifier = RedisNotifier(app.state.redis, settings.events_channel)
    worker = WebhookWorker(app.state.webhook_queue, SessionLocal, notifier)
    worker_task = asyncio.create_task(worker.run())


@app.on_event("shutdown")
async def on_shutdown() -> None:
    global worker, worker_task
    if worker:
        worker.stop()
    if worker_task:
        worker_task.cancel()
    if app.state.redis:
        await app.state.redis.close()
        app.state.redis = None


async def wait_for_database(
    max_attempts: Optional[int] = None, delay_seconds: Optional[float] = None
) -> None:
    """Block startup until the database accepts connections, backing off between tries."""
    attempts = max_attempts or settings.db_connect_attempts
    delay = delay_seconds or settings.db_connect_delay_seconds
    for attempt in range(1, attempts + 1):
        try:
            with engine.connect():
                return
        except OperationalError:
            if attempt == attempts:
                logger.exception("Database unreachable after %s attempt(s)", attempts)
                raise
            logger.warning("Database not ready (%s/%s), retrying in %.1fs", attempt, attempts, delay)
            await asyncio.sleep(delay)
            delay = min(delay * 1.5, settings.db_connect_max_delay_seconds)

