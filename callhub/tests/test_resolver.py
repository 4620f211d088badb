from datetime import timedelta

import pytest

from callhub.core.timeutils import utc_now
from callhub.services.extractor import NormalizedFact
from callhub.services.payloads import EventKind
from callhub.services.resolver import CallResolver, ResolutionAction, pick_richest

from callhub.tests.factories import AGENT_NUMBER, ASSISTANT_ID, CUSTOMER_NUMBER


def fact(**fields):
    values = {
        "kind": EventKind.STATUS_UPDATE,
        "assistant_id": ASSISTANT_ID,
        "call_id": "abc123",
        "from_number": CUSTOMER_NUMBER,
        "to_number": AGENT_NUMBER,
        "status": "in-progress",
    }
    values.update(fields)
    return NormalizedFact(**values)


@pytest.fixture()
def resolver(storage):
    return CallResolver(
        storage,
        number_window=timedelta(minutes=60),
        unknown_number_window=timedelta(minutes=5),
    )


@pytest.mark.asyncio
async def test_matches_by_external_id(resolver, make_call):
    call = make_call(vapi_call_id="abc123", from_number="unknown")
    resolution = await resolver.resolve(fact(from_number=None))
    assert resolution.action is ResolutionAction.EXISTING
    assert resolution.tier == 1
    assert resolution.call.id == call.id


@pytest.mark.asyncio
async def test_duplicates_collapse_onto_richest(resolver, make_call, storage):
    bare = make_call(vapi_call_id="abc123")
    rich = make_call(vapi_call_id="abc123", duration=42, recording_url="https://example.com/r.mp3")
    other = make_call(vapi_call_id="abc123", duration=90)
    resolution = await resolver.resolve(fact())
    assert resolution.call.id == rich.id
    assert sorted(resolution.removed_ids) == sorted([bare.id, other.id])
    remaining = await storage.get_all_calls()
    assert [call.id for call in remaining] == [rich.id]


@pytest.mark.asyncio
async def test_matches_number_pair_within_window(resolver, make_call):
    older = make_call(started_at=utc_now() - timedelta(minutes=30))
    newer = make_call(started_at=utc_now() - timedelta(minutes=2))
    resolution = await resolver.resolve(fact())
    assert resolution.tier == 2
    assert resolution.call.id == newer.id
    assert resolution.call.id != older.id


@pytest.mark.asyncio
async def test_number_pair_matches_in_either_order(resolver, make_call):
    call = make_call(from_number=AGENT_NUMBER, to_number=CUSTOMER_NUMBER, direction="outbound")
    resolution = await resolver.resolve(fact())
    assert resolution.tier == 2
    assert resolution.call.id == call.id


@pytest.mark.asyncio
async def test_number_pair_skips_records_of_another_call(resolver, make_call):
    make_call(vapi_call_id="previous-call")
    resolution = await resolver.resolve(fact())
    assert resolution.action is ResolutionAction.CREATE
    assert resolution.tier == 4


@pytest.mark.asyncio
async def test_number_pair_outside_window_creates(resolver, make_call):
    make_call(started_at=utc_now() - timedelta(hours=3))
    resolution = await resolver.resolve(fact())
    assert resolution.action is ResolutionAction.CREATE


@pytest.mark.asyncio
async def test_unknown_caller_attaches_to_recent_record(resolver, make_call):
    make_call(created_at=utc_now() - timedelta(minutes=20))
    recent = make_call(from_number="unknown", to_number="unknown", created_at=utc_now() - timedelta(minutes=1))
    resolution = await resolver.resolve(fact(from_number="anonymous", to_number=None))
    assert resolution.tier == 3
    assert resolution.call.id == recent.id


@pytest.mark.asyncio
async def test_unknown_caller_ignores_stale_records(resolver, make_call):
    make_call(created_at=utc_now() - timedelta(minutes=20))
    resolution = await resolver.resolve(fact(from_number=None, to_number=None))
    assert resolution.action is ResolutionAction.CREATE


@pytest.mark.asyncio
async def test_no_external_id_and_no_match_is_dropped(resolver, agent):
    resolution = await resolver.resolve(fact(call_id=None))
    assert resolution.action is ResolutionAction.DROP
    assert resolution.agent.id == agent.id


@pytest.mark.asyncio
async def test_unknown_assistant(resolver, make_call):
    make_call(vapi_call_id="abc123")
    resolution = await resolver.resolve(fact(assistant_id="asst-unknown"))
    assert resolution.action is ResolutionAction.AGENT_NOT_FOUND


@pytest.mark.asyncio
async def test_missing_assistant_uses_owner_of_matched_call(resolver, make_call, agent):
    call = make_call(vapi_call_id="abc123")
    resolution = await resolver.resolve(fact(assistant_id=None))
    assert resolution.agent.id == agent.id
    assert resolution.call.id == call.id


@pytest.mark.asyncio
async def test_missing_assistant_without_match(resolver, agent):
    resolution = await resolver.resolve(fact(assistant_id=None))
    assert resolution.action is ResolutionAction.AGENT_NOT_FOUND


def test_pick_richest_prefers_recording_then_duration(make_call):
    longest = make_call(duration=300)
    recorded = make_call(duration=10, recording_url="https://example.com/r.mp3")
    assert pick_richest([longest, recorded]).id == recorded.id
    assert pick_richest([longest, make_call(duration=20)]).id == longest.id


@pytest.mark.asyncio
async def test_known_caller_with_unknown_customer_is_not_attached(resolver, make_call):
    make_call(from_number="unknown", to_number="unknown", created_at=utc_now() - timedelta(minutes=1))
    outbound = fact(direction="outbound", call_id="out-x", from_number=AGENT_NUMBER, to_number=None)
    resolution = await resolver.resolve(outbound)
    assert resolution.action is ResolutionAction.CREATE
    assert resolution.tier == 4
