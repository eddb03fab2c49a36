"""Typed events emitted by the embedding and vector storage pipeline."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from loguru import logger


class VectorEvent(str, Enum):
    """Event types for embedding generation and vector store maintenance."""

    VALIDATION_FAILED = "validation_failed"
    FALLBACK_USED = "fallback_used"
    DIMENSION_MISMATCH_DETECTED = "dimension_mismatch_detected"
    INDEX_CREATED = "index_created"
    INDEX_FAILED = "index_failed"
    TOOL_SKIPPED = "tool_skipped"
    RECORDS_PURGED = "records_purged"


@dataclass(frozen=True)
class ValidationFailed:
    reason: str  # "shape", "zero", "range", "dimension"
    model: str
    detail: str = ""
    event: VectorEvent = field(default=VectorEvent.VALIDATION_FAILED, init=False)


@dataclass(frozen=True)
class FallbackUsed:
    reason: str  # "transport", "validation:<reason>", "error"
    width: int
    event: VectorEvent = field(default=VectorEvent.FALLBACK_USED, init=False)


@dataclass(frozen=True)
class DimensionMismatchDetected:
    from_width: int
    to_width: int
    event: VectorEvent = field(default=VectorEvent.DIMENSION_MISMATCH_DETECTED, init=False)


@dataclass(frozen=True)
class IndexCreated:
    kind: str
    width: int
    event: VectorEvent = field(default=VectorEvent.INDEX_CREATED, init=False)


@dataclass(frozen=True)
class IndexFailed:
    width: int
    message: str
    event: VectorEvent = field(default=VectorEvent.INDEX_FAILED, init=False)


@dataclass(frozen=True)
class ToolSkipped:
    server_name: str
    tool_name: str
    reason: str
    event: VectorEvent = field(default=VectorEvent.TOOL_SKIPPED, init=False)


@dataclass(frozen=True)
class RecordsPurged:
    kept_width: int
    event: VectorEvent = field(default=VectorEvent.RECORDS_PURGED, init=False)


class EventSink(Protocol):
    """Observability collaborator receiving typed pipeline events."""

    def emit(self, event: Any) -> None:
        """Handle one event instance."""


class LoggingEventSink:
    """Default sink: one structured loguru record per event."""

    def emit(self, event: Any) -> None:
        payload = {k: v for k, v in asdict(event).items() if k != "event"}
        logger.bind(event=event.event.value, **payload).debug(
            "vector event {}: {}", event.event.value, payload
        )


class RecordingEventSink:
    """Sink that keeps events in memory for inspection."""

    def __init__(self):
        self.events: list[Any] = []

    def emit(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: VectorEvent) -> list[Any]:
        return [e for e in self.events if e.event == event_type]

    def clear(self) -> None:
        self.events.clear()


_default_sink: EventSink = LoggingEventSink()


def default_sink(sink: Optional[EventSink] = None) -> EventSink:
    """Return the given sink, or the shared logging sink when None."""
    return sink if sink is not None else _default_sink
