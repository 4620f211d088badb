import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from callhub.core.timeutils import parse_datetime
from callhub.services.classifier import classify_payload
from callhub.services.payloads import (
    ClassifiedPayload,
    EventKind,
    PayloadSchema,
    VapiCall,
    VapiEvent,
)

logger = logging.getLogger(__name__)

OUTBOUND_CALL_TYPE = "outboundPhoneCall"
INBOUND = "inbound"
OUTBOUND = "outbound"


@dataclass
class NormalizedFact:
    kind: EventKind = EventKind.UNKNOWN
    assistant_id: Optional[str] = None
    call_id: Optional[str] = None
    direction: str = INBOUND
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    duration: int = 0
    cost: float = 0.0
    status: Optional[str] = None
    ended_reason: Optional[str] = None
    recording_url: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    function_name: Optional[str] = None

    @property
    def customer_number(self) -> Optional[str]:
        return self.from_number if self.direction == INBOUND else self.to_number

    @property
    def assistant_number(self) -> Optional[str]:
        return self.to_number if self.direction == INBOUND else self.from_number


def ceil_seconds(value: float) -> int:
    # round first so float noise like 42.0000000001 does not become 43
    return int(math.ceil(round(value, 6)))


def _first(values: Iterable[Any]) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _first_positive(values: Iterable[Optional[float]]) -> Optional[float]:
    for value in values:
        if value is not None and value > 0:
            return value
    return None


def assign_numbers(direction: str, customer: Optional[str], assistant: Optional[str]) -> tuple:
    """Return ``(from_number, to_number)`` for the call direction."""
    if direction == OUTBOUND:
        return assistant, customer
    return customer, assistant


class FactExtractor(ABC):
    """Pull a ``NormalizedFact`` out of one payload generation."""

    @abstractmethod
    def sources(self, event: VapiEvent) -> List[VapiCall]:
        raise NotImplementedError

    @abstractmethod
    def call_id(self, event: VapiEvent) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def call_type(self, event: VapiEvent) -> Optional[str]:
        raise NotImplementedError

    def extract(self, classified: ClassifiedPayload) -> NormalizedFact:
        try:
            event = classified.event()
        except ValidationError:
            logger.warning("Could not parse %s payload; extracting nothing", classified.schema.value, exc_info=True)
            return NormalizedFact(kind=classified.kind)
        sources = self.sources(event)
        direction = OUTBOUND if self.call_type(event) == OUTBOUND_CALL_TYPE else INBOUND
        from_number, to_number = assign_numbers(
            direction,
            self.customer_number(sources),
            self.assistant_number(sources),
        )
        started_at = parse_datetime(_first(s.startedAt for s in sources)) or parse_datetime(
            _first(s.createdAt for s in sources)
        )
        ended_at = parse_datetime(_first(s.endedAt for s in sources))
        return NormalizedFact(
            kind=classified.kind,
            assistant_id=self.assistant_id(event, sources),
            call_id=self.call_id(event),
            direction=direction,
            from_number=from_number,
            to_number=to_number,
            duration=self.duration(event, sources, started_at, ended_at),
            cost=self.cost(sources),
            status=_first(s.status for s in sources),
            ended_reason=_first(s.endedReason for s in sources),
            recording_url=self.recording_url(sources),
            started_at=started_at,
            ended_at=ended_at,
            function_name=self.function_name(event),
        )

    def assistant_id(self, event: VapiEvent, sources: List[VapiCall]) -> Optional[str]:
        value = _first(s.assistantId for s in sources)
        if value is None and event.assistant:
            value = event.assistant.id
        return value

    def customer_number(self, sources: List[VapiCall]) -> Optional[str]:
        return _first(
            [
                _first(s.customer.number for s in sources if s.customer),
                _first(s.transport.to for s in sources if s.transport),
                _first(s.to for s in sources),
            ]
        )

    def assistant_number(self, sources: List[VapiCall]) -> Optional[str]:
        # older payloads keep the platform number in the "from" slot
        return _first(
            [
                _first(s.phoneNumber.number for s in sources if s.phoneNumber),
                _first(s.transport.from_ for s in sources if s.transport),
                _first(s.from_ for s in sources),
            ]
        )

    def duration(
        self,
        event: VapiEvent,
        sources: List[VapiCall],
        started_at: Optional[datetime],
        ended_at: Optional[datetime],
    ) -> int:
        seconds = _first_positive(s.durationSeconds for s in sources)
        if seconds is None:
            seconds = _first_positive(s.duration for s in sources)
        if seconds is not None:
            return ceil_seconds(seconds)
        millis = _first_positive(s.durationMs for s in sources)
        if millis is not None:
            return ceil_seconds(millis / 1000)
        minutes = _first_positive(s.durationMinutes for s in sources)
        if minutes is not None:
            return ceil_seconds(minutes * 60)
        if started_at and ended_at and ended_at > started_at:
            return ceil_seconds((ended_at - started_at).total_seconds())
        marker = self.last_message_marker(sources)
        if marker:
            return ceil_seconds(marker)
        return 0

    def last_message_marker(self, sources: List[VapiCall]) -> Optional[float]:
        for source in sources:
            messages = (source.artifact.messages if source.artifact else None) or source.messages
            for message in reversed(messages or []):
                if message.secondsFromStart is None:
                    continue
                return message.secondsFromStart + (message.duration or 0) / 1000
        return None

    def cost(self, sources: List[VapiCall]) -> float:
        scalar = _first_positive(s.cost for s in sources)
        if scalar is not None:
            return round(scalar, 6)
        total = _first_positive(s.costBreakdown.total for s in sources if s.costBreakdown)
        if total is not None:
            return round(total, 6)
        for source in sources:
            items = [item.cost for item in source.costs or [] if item.cost]
            if items:
                return round(sum(items), 6)
        return 0.0

    def recording_url(self, sources: List[VapiCall]) -> Optional[str]:
        for source in sources:
            artifact = source.artifact
            if artifact and artifact.recordingUrl:
                return artifact.recordingUrl
            if source.recordingUrl:
                return source.recordingUrl
            recording = artifact.recording if artifact else None
            if recording:
                mono = recording.mono or {}
                url = recording.url or mono.get("combinedUrl")
                if url:
                    return str(url)
        return None

    def function_name(self, event: VapiEvent) -> Optional[str]:
        for nested in (event.functionCall, event.function):
            if nested and nested.name:
                return nested.name
        if event.functionName:
            return event.functionName
        tool_calls = (event.model_extra or {}).get("toolCallList")
        if isinstance(tool_calls, list) and tool_calls and isinstance(tool_calls[0], dict):
            function = tool_calls[0].get("function")
            if isinstance(function, dict) and function.get("name"):
                return str(function["name"])
        return None


class EventExtractor(FactExtractor):
    """FLAT and ENVELOPE events: event-level facts first, then the nested call."""

    def sources(self, event: VapiEvent) -> List[VapiCall]:
        return [event, event.call] if event.call else [event]

    def call_id(self, event: VapiEvent) -> Optional[str]:
        if event.call and event.call.id:
            return event.call.id
        value = (event.model_extra or {}).get("callId")
        return str(value) if value else None

    def call_type(self, event: VapiEvent) -> Optional[str]:
        # event.type is the event discriminator here, never the call type
        return event.call.type if event.call else None


class CallObjectExtractor(FactExtractor):
    """BARE bodies: the body is the call itself."""

    def sources(self, event: VapiEvent) -> List[VapiCall]:
        return [event, event.call] if event.call else [event]

    def call_id(self, event: VapiEvent) -> Optional[str]:
        if event.id:
            return event.id
        return event.call.id if event.call else None

    def call_type(self, event: VapiEvent) -> Optional[str]:
        if event.type:
            return event.type
        return event.call.type if event.call else None


EXTRACTORS = {
    PayloadSchema.FLAT: EventExtractor(),
    PayloadSchema.ENVELOPE: EventExtractor(),
    PayloadSchema.BARE: CallObjectExtractor(),
}


def extract_fact(classified: ClassifiedPayload) -> NormalizedFact:
    return EXTRACTORS[classified.schema].extract(classified)


def extract(payload: Any, kind: Optional[EventKind] = None) -> NormalizedFact:
    classified = classify_payload(payload)
    if kind is not None and kind is not classified.kind:
        classified = ClassifiedPayload(kind, classified.schema, classified.body, classified.raw)
    return extract_fact(classified)
