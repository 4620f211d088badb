"""
Catch-up jobs for what webhook delivery missed or duplicated.

``sync_vapi_calls`` pulls ended calls from the platform API and folds them in
through the same resolve/merge path a webhook would take. ``dedupe_calls``
sweeps every external id that ended up on more than one record.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from callhub.services.extractor import extract_fact
from callhub.services.merge import is_terminal
from callhub.services.notifier import Notifier
from callhub.services.payloads import ClassifiedPayload, EventKind, PayloadSchema
from callhub.services.resolver import pick_richest, remove_duplicates
from callhub.services.storage import CallStorage
from callhub.services.vapi_client import VapiClient
from callhub.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    errors: List[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.counts["created"] + self.counts["updated"]


async def sync_vapi_calls(
    storage: CallStorage,
    notifier: Notifier,
    client: VapiClient,
    limit: int = 100,
    created_after: Optional[datetime] = None,
) -> SyncReport:
    report = SyncReport()
    calls = await client.list_calls(limit=limit, created_after=created_after)
    processor = WebhookProcessor(storage, notifier)
    for call in calls:
        if not isinstance(call, dict) or not is_terminal(call.get("status")):
            report.counts["skipped"] += 1
            continue
        classified = ClassifiedPayload(EventKind.END_OF_CALL_REPORT, PayloadSchema.BARE, call, call)
        try:
            outcome = await processor.apply(extract_fact(classified))
        except Exception as exc:
            message = f"{call.get('id')}: {type(exc).__name__}: {exc}"
            report.errors.append(message)
            logger.exception("Failed to reconcile call %s", call.get("id"))
            continue
        report.counts[outcome.status] += 1
    logger.info(
        "Vapi sync finished: %s, %s error(s)",
        dict(report.counts),
        len(report.errors),
    )
    return report


async def dedupe_calls(storage: CallStorage) -> int:
    groups = defaultdict(list)
    for call in await storage.get_all_calls():
        if call.vapi_call_id:
            groups[call.vapi_call_id].append(call)
    removed = 0
    for calls in groups.values():
        if len(calls) < 2:
            continue
        removed += len(await remove_duplicates(storage, pick_richest(calls), calls))
    if removed:
        logger.info("Duplicate sweep removed %s call(s)", removed)
    return removed
