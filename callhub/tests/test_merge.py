from callhub.models import Agent, CallRecord
from callhub.services.extractor import NormalizedFact
from callhub.services.merge import is_terminal, merge, new_call_fields
from callhub.services.payloads import EventKind

from callhub.tests.factories import AGENT_NUMBER, CUSTOMER_NUMBER


def make_record(**fields):
    values = {
        "vapi_call_id": "abc123",
        "from_number": CUSTOMER_NUMBER,
        "to_number": AGENT_NUMBER,
        "duration": 0,
        "cost": 0.0,
        "outcome": "in-progress",
    }
    values.update(fields)
    return CallRecord(**values)


def report(**fields):
    return NormalizedFact(kind=EventKind.END_OF_CALL_REPORT, call_id="abc123", **fields)


def heartbeat(status, **fields):
    return NormalizedFact(kind=EventKind.STATUS_UPDATE, call_id="abc123", status=status, **fields)


def test_report_fills_metrics_and_completes():
    updates = merge(make_record(), report(duration=42, cost=0.07, ended_reason="assistant-ended-call"))
    assert updates == {
        "duration": 42,
        "cost": 0.07,
        "ended_reason": "assistant-ended-call",
        "outcome": "completed",
    }


def test_zero_metrics_never_overwrite():
    record = make_record(duration=42, cost=0.07, outcome="ended")
    assert merge(record, report(status="ended")) == {}


def test_smaller_metrics_are_ignored():
    record = make_record(duration=42, cost=0.07, outcome="completed")
    assert merge(record, report(duration=30, cost=0.01)) == {}


def test_heartbeat_does_not_touch_metrics():
    record = make_record()
    updates = merge(record, heartbeat("in-progress", ended_reason="pipeline-error"))
    assert updates == {}


def test_terminal_status_sets_metrics():
    updates = merge(make_record(), heartbeat("ended", ended_reason="customer-ended-call"))
    assert updates == {"ended_reason": "customer-ended-call", "outcome": "ended"}


def test_late_heartbeat_cannot_reopen_finished_call():
    record = make_record(outcome="ended", duration=42)
    assert merge(record, heartbeat("in-progress")) == {}


def test_recording_url_written_once():
    record = make_record(recording_url="https://example.com/first.mp3", outcome="completed")
    assert merge(record, report(recording_url="https://example.com/second.mp3")) == {}
    updates = merge(make_record(outcome="completed"), report(recording_url="https://example.com/a.mp3"))
    assert updates == {"recording_url": "https://example.com/a.mp3"}


def test_external_id_is_assigned_but_never_replaced():
    assert merge(make_record(vapi_call_id=None), heartbeat("ringing")) == {
        "outcome": "ringing",
        "vapi_call_id": "abc123",
    }
    record = make_record(vapi_call_id="other", outcome="ringing")
    assert merge(record, heartbeat("ringing")) == {}


def test_unknown_caller_is_backfilled():
    record = make_record(from_number="unknown", to_number="unknown", outcome="completed")
    fact = report(from_number=CUSTOMER_NUMBER, to_number=AGENT_NUMBER)
    updates = merge(record, fact)
    assert updates["from_number"] == CUSTOMER_NUMBER
    assert updates["to_number"] == AGENT_NUMBER
    assert updates["direction"] == "inbound"


def test_known_numbers_are_kept():
    record = make_record(outcome="completed")
    assert merge(record, report(from_number="+15550000000", to_number="+15550000001")) == {}


def test_new_call_fields_for_heartbeat():
    agent = Agent(id=7, user_id="user-1", vapi_assistant_id="asst-123")
    fields = new_call_fields(heartbeat("ringing", duration=0, ended_reason="x"), agent)
    assert fields["agent_id"] == 7
    assert fields["outcome"] == "ringing"
    assert fields["ended_reason"] is None
    assert fields["from_number"] == "unknown"
    assert fields["to_number"] == "unknown"
    assert fields["started_at"] is not None


def test_new_call_fields_without_status_is_in_progress():
    agent = Agent(id=1, user_id="user-1", vapi_assistant_id="asst-123")
    fact = NormalizedFact(kind=EventKind.STATUS_UPDATE, call_id="abc123")
    assert new_call_fields(fact, agent)["outcome"] == "in-progress"


def test_terminal_statuses():
    assert is_terminal("ended")
    assert is_terminal(" Completed ")
    assert not is_terminal("in-progress")
    assert not is_terminal(None)
