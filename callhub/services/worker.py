import asyncio
import logging

from callhub.services.notifier import Notifier
from callhub.services.storage import SqlAlchemyStorage
from callhub.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)


class WebhookWorker:
    """Drain acknowledged webhook payloads, one DB session per delivery."""

    def __init__(self, queue: asyncio.Queue, db_factory, notifier: Notifier):
        self.queue = queue
        self.db_factory = db_factory
        self.notifier = notifier
        self._running = True

    async def run(self) -> None:
        while self._running:
            payload = await self.queue.get()
            try:
                await self.handle(payload)
            except Exception:
                logger.exception("Webhook worker failed on a delivery")
            finally:
                self.queue.task_done()

    async def handle(self, payload) -> None:
        db = self.db_factory()
        try:
            outcome = await WebhookProcessor(SqlAlchemyStorage(db), self.notifier).process(payload)
            logger.debug("Webhook %s handled: %s", outcome.log_id, outcome.status)
        finally:
            db.close()

    def stop(self) -> None:
        self._running = False
