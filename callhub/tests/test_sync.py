import httpx
import pytest

from callhub.models import CallRecord
from callhub.services.sync import dedupe_calls, sync_vapi_calls
from callhub.services.vapi_client import VapiClient, VapiClientError

from callhub.tests.factories import AGENT_NUMBER, ASSISTANT_ID, CUSTOMER_NUMBER


def api_call(call_id, status="ended", **fields):
    call = {
        "id": call_id,
        "type": "inboundPhoneCall",
        "status": status,
        "assistantId": ASSISTANT_ID,
        "customer": {"number": CUSTOMER_NUMBER},
        "phoneNumber": {"number": AGENT_NUMBER},
        "startedAt": "2026-10-17T10:00:00Z",
        "endedAt": "2026-10-17T10:00:42Z",
        "endedReason": "customer-ended-call",
        "cost": 0.07,
    }
    call.update(fields)
    return call


class FakeVapiClient:
    def __init__(self, calls):
        self.calls = calls
        self.requested = None

    async def list_calls(self, limit=100, created_after=None):
        self.requested = limit
        return self.calls


@pytest.mark.asyncio
async def test_sync_creates_missing_and_updates_known_calls(storage, notifier, make_call, db):
    known = make_call(vapi_call_id="known-1")
    client = FakeVapiClient(
        [
            api_call("known-1"),
            api_call("missing-1", startedAt="2026-10-17T11:00:00Z", endedAt="2026-10-17T11:01:00Z"),
            api_call("live-1", status="in-progress"),
            "garbage",
        ]
    )
    report = await sync_vapi_calls(storage, notifier, client, limit=50)

    assert client.requested == 50
    assert report.counts["updated"] == 1
    assert report.counts["created"] == 1
    assert report.counts["skipped"] == 2
    assert report.changed == 2
    assert report.errors == []

    db.expire_all()
    records = {call.vapi_call_id: call for call in db.query(CallRecord).all()}
    assert set(records) == {"known-1", "missing-1"}
    assert records["known-1"].id == known.id
    assert records["known-1"].duration == 42
    assert records["known-1"].outcome == "ended"
    assert records["missing-1"].duration == 60
    assert records["missing-1"].ended_reason == "customer-ended-call"


@pytest.mark.asyncio
async def test_sync_reports_unknown_assistant(storage, notifier, agent):
    client = FakeVapiClient([api_call("c-1", assistantId="asst-other")])
    report = await sync_vapi_calls(storage, notifier, client)
    assert report.counts["agent_not_found"] == 1
    assert report.changed == 0


@pytest.mark.asyncio
async def test_dedupe_keeps_richest_record(storage, make_call, db):
    make_call(vapi_call_id="dup-1")
    keeper = make_call(vapi_call_id="dup-1", recording_url="https://example.com/r.mp3")
    make_call(vapi_call_id="dup-1", duration=80)
    solo = make_call(vapi_call_id="solo-1")
    make_call(vapi_call_id=None)
    make_call(vapi_call_id=None)

    assert await dedupe_calls(storage) == 2
    remaining = sorted(call.id for call in db.query(CallRecord).all())
    assert keeper.id in remaining
    assert solo.id in remaining
    assert len(remaining) == 4
    assert await dedupe_calls(storage) == 0


@pytest.mark.asyncio
async def test_vapi_client_lists_calls():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["limit"] = request.url.params["limit"]
        return httpx.Response(200, json=[api_call("c-1")])

    client = VapiClient(api_key="key-1", base_url="https://vapi.test", transport=httpx.MockTransport(handler))
    try:
        calls = await client.list_calls(limit=5)
    finally:
        await client.close()
    assert [call["id"] for call in calls] == ["c-1"]
    assert seen == {"auth": "Bearer key-1", "limit": "5"}


@pytest.mark.asyncio
async def test_vapi_client_wraps_http_errors():
    client = VapiClient(
        api_key="key-1",
        base_url="https://vapi.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "nope"})),
    )
    try:
        with pytest.raises(VapiClientError):
            await client.list_calls()
    finally:
        await client.close()
