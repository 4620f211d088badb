from celery import Celery
from callhub.core.config import settings

celery_app = Celery(
    "callhub",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["callhub.tasks"],
)

celery_app.conf.beat_schedule = {
    "sync-vapi-calls": {
        "task": "callhub.tasks.sync_vapi_calls",
        "schedule": float(settings.vapi_sync_interval_seconds),
    },
    "dedupe-calls-hourly": {
        "task": "callhub.tasks.dedupe_calls",
        "schedule": 3600.0,
    },
}
