import logging
from typing import Any, Optional

from callhub.services.payloads import ClassifiedPayload, EventKind, PayloadSchema

logger = logging.getLogger(__name__)

KNOWN_KINDS = {
    "end-of-call-report": EventKind.END_OF_CALL_REPORT,
    "status-update": EventKind.STATUS_UPDATE,
    "function-call": EventKind.FUNCTION_CALL,
    "tool-calls": EventKind.FUNCTION_CALL,
}

METRIC_FIELDS = ("cost", "durationSeconds", "durationMs", "durationMinutes", "duration")


def _known_kind(value: Any) -> Optional[EventKind]:
    if not isinstance(value, str):
        return None
    return KNOWN_KINDS.get(value.strip().lower())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _has_metric(body: dict) -> bool:
    if any(_is_number(body.get(field)) for field in METRIC_FIELDS):
        return True
    breakdown = body.get("costBreakdown")
    return isinstance(breakdown, dict) and _is_number(breakdown.get("total"))


def _has_function_name(body: dict) -> bool:
    for key in ("functionCall", "function"):
        nested = body.get(key)
        if isinstance(nested, dict) and isinstance(nested.get("name"), str):
            return True
    return isinstance(body.get("functionName"), str)


def infer_kind(body: Any) -> EventKind:
    if not isinstance(body, dict):
        return EventKind.UNKNOWN
    if _has_metric(body):
        return EventKind.END_OF_CALL_REPORT
    if isinstance(body.get("status"), str) and body["status"].strip():
        return EventKind.STATUS_UPDATE
    if _has_function_name(body):
        return EventKind.FUNCTION_CALL
    return EventKind.UNKNOWN


def classify_payload(payload: Any) -> ClassifiedPayload:
    if not isinstance(payload, dict):
        logger.info("Webhook body is not an object (%s); classified as unknown", type(payload).__name__)
        return ClassifiedPayload(EventKind.UNKNOWN, PayloadSchema.BARE, payload, payload)

    kind = _known_kind(payload.get("type"))
    if kind:
        return ClassifiedPayload(kind, PayloadSchema.FLAT, payload, payload)

    message = payload.get("message")
    if isinstance(message, dict):
        kind = _known_kind(message.get("type"))
        if kind:
            return ClassifiedPayload(kind, PayloadSchema.ENVELOPE, message, payload)
        kind = infer_kind(message)
        if kind is not EventKind.UNKNOWN:
            return ClassifiedPayload(kind, PayloadSchema.ENVELOPE, message, payload)

    kind = infer_kind(payload)
    if kind is EventKind.UNKNOWN:
        logger.info("Unrecognised webhook shape with keys %s", sorted(payload.keys())[:20])
    return ClassifiedPayload(kind, PayloadSchema.BARE, payload, payload)


def classify(payload: Any) -> EventKind:
    return classify_payload(payload).kind
