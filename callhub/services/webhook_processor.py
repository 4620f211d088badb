import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from callhub.models import Agent, CallRecord, WebhookLog
from callhub.services.classifier import classify_payload
from callhub.services.extractor import NormalizedFact, extract_fact
from callhub.services.merge import merge, new_call_fields
from callhub.services.notifier import Notifier
from callhub.services.payloads import ClassifiedPayload, EventKind
from callhub.services.resolver import CallResolver, ResolutionAction
from callhub.services.storage import CallStorage

logger = logging.getLogger(__name__)

CALL_CREATED = "call_created"
CALL_UPDATED = "call_updated"


@dataclass
class ProcessingOutcome:
    kind: EventKind
    status: str
    call_id: Optional[int] = None
    log_id: Optional[int] = None
    tier: Optional[int] = None
    error: str = ""
    updated_fields: List[str] = field(default_factory=list)
    removed_ids: List[int] = field(default_factory=list)

    @property
    def processed(self) -> bool:
        return self.status not in ("failed", "agent_not_found")


class WebhookProcessor:
    """Run one delivery through classify -> extract -> resolve -> merge -> write.

    Exactly one webhook log entry is written per delivery and updated once
    when handling finishes. ``process`` never raises; failures end up on the
    log entry.
    """

    def __init__(
        self,
        storage: CallStorage,
        notifier: Notifier,
        resolver: Optional[CallResolver] = None,
    ):
        self.storage = storage
        self.notifier = notifier
        self.resolver = resolver or CallResolver(storage)

    async def process(self, payload: Any) -> ProcessingOutcome:
        classified = classify_payload(payload)
        log_entry = await self._open_log(classified)
        try:
            outcome = await self.reconcile(classified)
        except Exception as exc:
            logger.exception("Failed to process %s webhook", classified.kind.value)
            outcome = ProcessingOutcome(classified.kind, "failed", error=f"{type(exc).__name__}: {exc}")
        if log_entry is not None:
            outcome.log_id = log_entry.id
            await self._close_log(log_entry, outcome)
        return outcome

    async def reconcile(self, classified: ClassifiedPayload) -> ProcessingOutcome:
        if classified.kind is EventKind.UNKNOWN:
            return ProcessingOutcome(classified.kind, "ignored")
        fact = extract_fact(classified)
        if classified.kind is EventKind.FUNCTION_CALL:
            logger.info("Function call %s for call %s acknowledged", fact.function_name, fact.call_id)
            return ProcessingOutcome(classified.kind, "ignored")
        return await self.apply(fact)

    async def apply(self, fact: NormalizedFact) -> ProcessingOutcome:
        resolution = await self.resolver.resolve(fact)

        if resolution.action is ResolutionAction.AGENT_NOT_FOUND:
            return ProcessingOutcome(
                fact.kind,
                "agent_not_found",
                error=f"No agent found for assistant {fact.assistant_id or '<missing>'}",
            )
        if resolution.action is ResolutionAction.DROP:
            return ProcessingOutcome(fact.kind, "dropped", tier=resolution.tier)

        agent = resolution.agent
        if resolution.action is ResolutionAction.CREATE:
            record = await self.storage.create_call(new_call_fields(fact, agent))
            logger.info("Created call %s for external id %s", record.id, record.vapi_call_id)
            await self._notify(agent, CALL_CREATED, record)
            return ProcessingOutcome(fact.kind, "created", call_id=record.id, tier=resolution.tier)

        record = resolution.call
        updates = merge(record, fact)
        if updates:
            record = await self.storage.update_call(record.id, updates)
            logger.info("Updated call %s (tier %s): %s", record.id, resolution.tier, sorted(updates))
        if updates or resolution.removed_ids:
            await self._notify(agent, CALL_UPDATED, record)
        return ProcessingOutcome(
            fact.kind,
            "updated" if updates else "unchanged",
            call_id=record.id,
            tier=resolution.tier,
            updated_fields=sorted(updates),
            removed_ids=resolution.removed_ids,
        )

    async def _open_log(self, classified: ClassifiedPayload) -> Optional[WebhookLog]:
        try:
            return await self.storage.create_webhook_log(
                {
                    "type": classified.kind.value,
                    "payload": classified.raw,
                    "processed": False,
                    "error": "",
                }
            )
        except Exception:
            logger.exception("Failed to record %s webhook", classified.kind.value)
            return None

    async def _close_log(self, log_entry: WebhookLog, outcome: ProcessingOutcome) -> None:
        try:
            await self.storage.update_webhook_log(
                log_entry.id, {"processed": outcome.processed, "error": outcome.error}
            )
        except Exception:
            logger.exception("Failed to finalize webhook log %s", log_entry.id)

    async def _notify(self, agent: Agent, event_name: str, record: CallRecord) -> None:
        try:
            await self.notifier.notify(
                agent.user_id,
                event_name,
                {"callId": record.id, "vapiCallId": record.vapi_call_id},
            )
        except Exception:
            logger.warning("Notification %s for call %s failed", event_name, record.id, exc_info=True)
