"""
Typed views over the webhook bodies the voice platform has sent over time.

Two generations carry an explicit discriminator:

* FLAT      - ``{"type": "end-of-call-report", "call": {...}, "cost": ...}``
* ENVELOPE  - ``{"message": {"type": "end-of-call-report", "call": {...}}}``

Anything else is BARE: the body is taken as-is (usually a call object as
returned by the REST API) and its kind is inferred from its shape.

All models allow extra fields so new keys from the platform never break
parsing. Numbers, strings and nested objects of the wrong shape are coerced
to ``None`` instead of raising.
"""

import enum
import math
from dataclasses import dataclass
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


class EventKind(enum.Enum):
    END_OF_CALL_REPORT = "end-of-call-report"
    STATUS_UPDATE = "status-update"
    FUNCTION_CALL = "function-call"
    UNKNOWN = "unknown"


class PayloadSchema(enum.Enum):
    FLAT = "flat"
    ENVELOPE = "envelope"
    BARE = "bare"


def _lenient_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    # json.loads accepts Infinity and NaN
    return number if math.isfinite(number) else None


def _lenient_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _mapping_only(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


def _mappings_only(value: Any) -> Optional[list]:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, dict)]


Number = Annotated[Optional[float], BeforeValidator(_lenient_number)]
Text = Annotated[Optional[str], BeforeValidator(_lenient_str)]


class VapiModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class VapiPhoneNumber(VapiModel):
    number: Text = None


class VapiCustomer(VapiModel):
    number: Text = None
    name: Text = None


class VapiAssistant(VapiModel):
    id: Text = None


class VapiCostBreakdown(VapiModel):
    total: Number = None


class VapiCostItem(VapiModel):
    type: Text = None
    cost: Number = None


class VapiTranscriptMessage(VapiModel):
    role: Text = None
    secondsFromStart: Number = None
    # milliseconds
    duration: Number = None


class VapiRecording(VapiModel):
    url: Text = None
    mono: Annotated[Optional[dict], BeforeValidator(_mapping_only)] = None


class VapiArtifact(VapiModel):
    recordingUrl: Text = None
    recording: Annotated[Optional[VapiRecording], BeforeValidator(_mapping_only)] = None
    messages: Annotated[Optional[List[VapiTranscriptMessage]], BeforeValidator(_mappings_only)] = None


class VapiTransport(VapiModel):
    from_: Text = Field(None, alias="from")
    to: Text = None


class VapiFunctionCall(VapiModel):
    name: Text = None


class VapiCall(VapiModel):
    """Call object, either nested in an event or returned by ``GET /call``."""

    id: Text = None
    type: Text = None
    status: Text = None
    assistantId: Text = None
    customer: Annotated[Optional[VapiCustomer], BeforeValidator(_mapping_only)] = None
    phoneNumber: Annotated[Optional[VapiPhoneNumber], BeforeValidator(_mapping_only)] = None
    transport: Annotated[Optional[VapiTransport], BeforeValidator(_mapping_only)] = None
    # older payloads put bare numbers next to the call facts
    from_: Text = Field(None, alias="from")
    to: Text = None
    createdAt: Any = None
    startedAt: Any = None
    endedAt: Any = None
    endedReason: Text = None
    cost: Number = None
    costBreakdown: Annotated[Optional[VapiCostBreakdown], BeforeValidator(_mapping_only)] = None
    costs: Annotated[Optional[List[VapiCostItem]], BeforeValidator(_mappings_only)] = None
    durationSeconds: Number = None
    durationMs: Number = None
    durationMinutes: Number = None
    # seconds, only seen on older payloads
    duration: Number = None
    recordingUrl: Text = None
    artifact: Annotated[Optional[VapiArtifact], BeforeValidator(_mapping_only)] = None
    messages: Annotated[Optional[List[VapiTranscriptMessage]], BeforeValidator(_mappings_only)] = None


class VapiEvent(VapiCall):
    """Event body: call facts at the top level plus an optional nested call."""

    call: Annotated[Optional[VapiCall], BeforeValidator(_mapping_only)] = None
    assistant: Annotated[Optional[VapiAssistant], BeforeValidator(_mapping_only)] = None
    functionCall: Annotated[Optional[VapiFunctionCall], BeforeValidator(_mapping_only)] = None
    function: Annotated[Optional[VapiFunctionCall], BeforeValidator(_mapping_only)] = None
    functionName: Text = None


@dataclass(frozen=True)
class ClassifiedPayload:
    kind: EventKind
    schema: PayloadSchema
    body: Any
    raw: Any

    def event(self) -> VapiEvent:
        if not isinstance(self.body, dict):
            return VapiEvent()
        return VapiEvent.model_validate(self.body)
