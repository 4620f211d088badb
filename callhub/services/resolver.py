"""
Map a normalized fact onto the one local call record it describes.

Matching runs in tiers and the first tier that yields a candidate wins:

1. external call id, cleaning up duplicates that share it
2. same number pair for the agent within the recent window
3. no usable caller (from) number: the agent's newest record still
   lacking an external id, created within a short window
4. nothing matched: create, but only when the fact has an external id

There is no lock around the read-then-write; concurrent deliveries can still
create two records for one call, and tier 1 folds them back together the
next time that call id shows up.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from callhub.core.config import settings
from callhub.core.timeutils import utc_now
from callhub.models import Agent, CallRecord
from callhub.services.extractor import NormalizedFact
from callhub.services.merge import is_usable_number
from callhub.services.storage import CallStorage

logger = logging.getLogger(__name__)


class ResolutionAction(enum.Enum):
    EXISTING = "existing"
    CREATE = "create"
    DROP = "drop"
    AGENT_NOT_FOUND = "agent_not_found"


@dataclass
class Resolution:
    action: ResolutionAction
    agent: Optional[Agent] = None
    call: Optional[CallRecord] = None
    tier: Optional[int] = None
    removed_ids: List[int] = field(default_factory=list)


def richness_key(call: CallRecord) -> tuple:
    return (
        bool(call.recording_url),
        call.duration or 0,
        call.cost or 0,
        call.started_at or datetime.min,
    )


def pick_richest(calls: Iterable[CallRecord]) -> CallRecord:
    """Most informative record: recording, then duration, cost, recency."""
    return max(calls, key=richness_key)


class CallResolver:
    def __init__(
        self,
        storage: CallStorage,
        clock: Callable[[], datetime] = utc_now,
        number_window: Optional[timedelta] = None,
        unknown_number_window: Optional[timedelta] = None,
    ):
        self.storage = storage
        self.clock = clock
        self.number_window = number_window or timedelta(minutes=settings.number_match_window_minutes)
        self.unknown_number_window = unknown_number_window or timedelta(
            minutes=settings.unknown_number_window_minutes
        )

    async def resolve(self, fact: NormalizedFact) -> Resolution:
        agents = await self.storage.get_all_agents()
        calls = await self.storage.get_all_calls()

        agent = self._find_agent(agents, fact.assistant_id)
        matches = [call for call in calls if fact.call_id and call.vapi_call_id == fact.call_id]

        if agent is None and fact.assistant_id is None and matches:
            owners = {call.agent_id for call in matches}
            agent = next((a for a in agents if a.id in owners), None)
        if agent is None:
            logger.warning(
                "No agent owns assistant %s (call %s); skipping event",
                fact.assistant_id,
                fact.call_id,
            )
            return Resolution(ResolutionAction.AGENT_NOT_FOUND)

        if matches:
            return await self._resolve_external_id(agent, matches)

        candidate = self._match_number_pair(agent, calls, fact)
        if candidate is not None:
            return Resolution(ResolutionAction.EXISTING, agent=agent, call=candidate, tier=2)

        candidate = self._match_unknown_caller(agent, calls, fact)
        if candidate is not None:
            return Resolution(ResolutionAction.EXISTING, agent=agent, call=candidate, tier=3)

        if fact.call_id:
            return Resolution(ResolutionAction.CREATE, agent=agent, tier=4)
        logger.warning(
            "Dropping %s event for agent %s: no external call id and no recent match",
            fact.kind.value,
            agent.id,
        )
        return Resolution(ResolutionAction.DROP, agent=agent, tier=4)

    def _find_agent(self, agents: List[Agent], assistant_id: Optional[str]) -> Optional[Agent]:
        if not assistant_id:
            return None
        return next((agent for agent in agents if agent.vapi_assistant_id == assistant_id), None)

    async def _resolve_external_id(self, agent: Agent, matches: List[CallRecord]) -> Resolution:
        if len(matches) == 1:
            return Resolution(ResolutionAction.EXISTING, agent=agent, call=matches[0], tier=1)
        keeper = pick_richest(matches)
        removed = await remove_duplicates(self.storage, keeper, matches)
        return Resolution(
            ResolutionAction.EXISTING, agent=agent, call=keeper, tier=1, removed_ids=removed
        )

    def _match_number_pair(
        self, agent: Agent, calls: List[CallRecord], fact: NormalizedFact
    ) -> Optional[CallRecord]:
        if not (is_usable_number(fact.from_number) and is_usable_number(fact.to_number)):
            return None
        since = self.clock() - self.number_window
        pair = {(fact.from_number, fact.to_number), (fact.to_number, fact.from_number)}
        candidates = [
            call
            for call in calls
            if call.agent_id == agent.id
            and call.started_at is not None
            and call.started_at >= since
            and (call.from_number, call.to_number) in pair
            and not (fact.call_id and call.vapi_call_id and call.vapi_call_id != fact.call_id)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda call: call.started_at)

    def _match_unknown_caller(
        self, agent: Agent, calls: List[CallRecord], fact: NormalizedFact
    ) -> Optional[CallRecord]:
        if is_usable_number(fact.from_number):
            return None
        since = self.clock() - self.unknown_number_window
        candidates = [
            call
            for call in calls
            if call.agent_id == agent.id
            and not call.vapi_call_id
            and call.created_at is not None
            and call.created_at >= since
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda call: call.created_at)


async def remove_duplicates(
    storage: CallStorage, keeper: CallRecord, matches: Iterable[CallRecord]
) -> List[int]:
    removed = []
    for call in matches:
        if call.id == keeper.id:
            continue
        if await storage.delete_call(call.id):
            removed.append(call.id)
    if removed:
        logger.info(
            "Removed duplicate calls %s for external id %s, kept %s",
            removed,
            keeper.vapi_call_id,
            keeper.id,
        )
    return removed
