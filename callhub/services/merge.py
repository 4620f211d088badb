"""
Field-level merge of a normalized fact into a call record.

Every rule only ever adds information: metrics grow, the recording URL is
written once, identifiers are never replaced. Applying the same facts in any
order therefore converges on the same record.
"""

from typing import Any, Dict, Optional

from callhub.core.timeutils import utc_now
from callhub.models import Agent, CallRecord
from callhub.services.extractor import NormalizedFact
from callhub.services.payloads import EventKind

UNKNOWN_NUMBER = "unknown"

TERMINAL_STATUSES = frozenset(
    {
        "completed",
        "ended",
        "failed",
        "error",
        "voicemail",
        "call-ended",
        "assistant-ended-call",
        "customer-ended-call",
        "user-ended-call",
        "assistant-ended",
        "customer-ended",
        "user-ended",
    }
)

UNUSABLE_NUMBERS = frozenset({"", UNKNOWN_NUMBER, "anonymous", "restricted", "null", "none"})


def is_terminal(status: Optional[str]) -> bool:
    return bool(status) and status.strip().lower() in TERMINAL_STATUSES


def is_usable_number(number: Optional[str]) -> bool:
    return bool(number) and number.strip().lower() not in UNUSABLE_NUMBERS


def fact_outcome(fact: NormalizedFact) -> Optional[str]:
    if fact.status:
        return fact.status
    if fact.kind is EventKind.END_OF_CALL_REPORT:
        return "completed"
    return None


def is_finished(fact: NormalizedFact) -> bool:
    return fact.kind is EventKind.END_OF_CALL_REPORT or is_terminal(fact.status)


def metrics_eligible(fact: NormalizedFact) -> bool:
    """A mid-call heartbeat must not touch metrics it cannot know."""
    return is_finished(fact) or fact.duration > 0 or fact.cost > 0


def merge(target: CallRecord, fact: NormalizedFact) -> Dict[str, Any]:
    """Return only the fields of ``target`` that ``fact`` makes more informative."""
    updates: Dict[str, Any] = {}

    if metrics_eligible(fact):
        if fact.duration > 0 and fact.duration > (target.duration or 0):
            updates["duration"] = fact.duration
        if fact.cost > 0 and fact.cost > (target.cost or 0):
            updates["cost"] = fact.cost
        if fact.ended_reason and fact.ended_reason != target.ended_reason:
            updates["ended_reason"] = fact.ended_reason

    if fact.recording_url and not target.recording_url:
        updates["recording_url"] = fact.recording_url

    outcome = fact_outcome(fact)
    if outcome and outcome != target.outcome:
        # a late non-terminal status must not reopen a finished call
        if is_terminal(outcome) or not is_terminal(target.outcome):
            updates["outcome"] = outcome

    if fact.call_id and not target.vapi_call_id:
        updates["vapi_call_id"] = fact.call_id

    if not is_usable_number(target.from_number) and is_usable_number(fact.from_number):
        updates["from_number"] = fact.from_number
        updates["direction"] = fact.direction
        if is_usable_number(fact.to_number):
            updates["to_number"] = fact.to_number
        if fact.started_at:
            updates["started_at"] = fact.started_at
    elif not is_usable_number(target.to_number) and is_usable_number(fact.to_number):
        updates["to_number"] = fact.to_number

    return updates


def new_call_fields(fact: NormalizedFact, agent: Agent) -> Dict[str, Any]:
    """Fields for a record created from ``fact``, under the same eligibility rules."""
    eligible = metrics_eligible(fact)
    return {
        "vapi_call_id": fact.call_id,
        "agent_id": agent.id,
        "direction": fact.direction,
        "from_number": fact.from_number if is_usable_number(fact.from_number) else UNKNOWN_NUMBER,
        "to_number": fact.to_number if is_usable_number(fact.to_number) else UNKNOWN_NUMBER,
        "started_at": fact.started_at or utc_now(),
        "duration": fact.duration if eligible else 0,
        "cost": fact.cost if eligible else 0.0,
        "outcome": fact_outcome(fact) or "in-progress",
        "ended_reason": fact.ended_reason if eligible else None,
        "recording_url": fact.recording_url,
    }
