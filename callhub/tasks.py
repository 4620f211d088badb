import asyncio

import redis.asyncio as redis
from celery import shared_task
from sqlalchemy.orm import Session

from callhub.core.config import settings
from callhub.core.database import SessionLocal
from callhub.services import sync
from callhub.services.notifier import RedisNotifier
from callhub.services.storage import SqlAlchemyStorage
from callhub.services.vapi_client import VapiClient


async def run_vapi_sync(db: Session, limit: int) -> dict:
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    client = VapiClient()
    try:
        report = await sync.sync_vapi_calls(
            SqlAlchemyStorage(db),
            RedisNotifier(redis_client, settings.events_channel),
            client,
            limit=limit,
        )
    finally:
        await client.close()
        await redis_client.close()
    return {"counts": dict(report.counts), "errors": report.errors}


@shared_task(name="callhub.tasks.sync_vapi_calls", bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={"max_retries": 5})
def sync_vapi_calls(self):
    if not settings.vapi_api_key:
        return {"counts": {}, "errors": ["VAPI_API_KEY is not configured"]}
    db: Session = SessionLocal()
    try:
        return asyncio.run(run_vapi_sync(db, settings.vapi_sync_page_size))
    finally:
        db.close()


@shared_task(name="callhub.tasks.dedupe_calls")
def dedupe_calls():
    db: Session = SessionLocal()
    try:
        return asyncio.run(sync.dedupe_calls(SqlAlchemyStorage(db)))
    finally:
        db.close()
