"""
Detection Events - Immutable integrity event records and their emitter
"""

import itertools
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Kinds of integrity events raised during an interview"""
    FOCUS_LOST = "focus_lost"
    FACE_ABSENT = "face_absent"
    MULTIPLE_FACES = "multiple_faces"
    PHONE_DETECTED = "phone_detected"
    BOOK_DETECTED = "book_detected"
    DEVICE_DETECTED = "device_detected"


# Types whose events carry a span duration
DURATION_TYPES = {EventType.FOCUS_LOST, EventType.FACE_ABSENT}

# Types raised by the object detector; they carry a confidence
OBJECT_TYPES = {
    EventType.PHONE_DETECTED,
    EventType.BOOK_DETECTED,
    EventType.DEVICE_DETECTED,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class DetectionEvent:
    """
    A single integrity event.

    ``timestamp`` is the time (ms) at which the condition started, not the
    tick on which it was reported. ``duration`` is set only for span events
    (focus_lost, face_absent) and ``confidence`` only for object events.
    """

    id: str
    type: EventType
    timestamp: int
    description: str
    duration: Optional[int] = None
    confidence: Optional[float] = None

    def __post_init__(self):
        if self.duration is not None and self.type not in DURATION_TYPES:
            raise ValueError(f"{self.type.value} events carry no duration")
        if self.confidence is not None and self.type not in OBJECT_TYPES:
            raise ValueError(f"{self.type.value} events carry no confidence")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "duration": self.duration,
            "confidence": self.confidence,
            "description": self.description,
        }


EventSink = Callable[[DetectionEvent], None]


class EventEmitter:
    """
    Builds DetectionEvent records and hands them to a sink.

    Ids are ``<timestamp>-<sequence>``; the sequence is shared by every
    emitter in the process so ids never collide, even for events created
    in the same millisecond.
    """

    _sequence = itertools.count(1)

    def __init__(self, sink: Optional[EventSink] = None):
        """
        Args:
            sink: Callable receiving each emitted event (e.g. a session log).
                  Without a sink, emit() only returns the event.
        """
        self.sink = sink

    def create(
        self,
        event_type: EventType,
        timestamp: int,
        description: str,
        duration: Optional[int] = None,
        confidence: Optional[float] = None
    ) -> DetectionEvent:
        """Construct an event with a fresh id. No side effects."""
        event_id = f"{timestamp}-{next(self._sequence)}"
        return DetectionEvent(
            id=event_id,
            type=EventType(event_type),
            timestamp=timestamp,
            description=description,
            duration=duration,
            confidence=confidence,
        )

    def emit(self, event: DetectionEvent) -> DetectionEvent:
        """Deliver an event to the sink."""
        if self.sink is not None:
            self.sink(event)
        return event

    # ── Description templates ──────────────────────────────

    def face_absent(self, started_at: int, duration: int) -> DetectionEvent:
        return self.create(
            EventType.FACE_ABSENT,
            started_at,
            f"Face was absent for {round_half_up(duration / 1000)} seconds",
            duration=duration,
        )

    def focus_lost(self, started_at: int, duration: int) -> DetectionEvent:
        return self.create(
            EventType.FOCUS_LOST,
            started_at,
            f"Lost focus for {round_half_up(duration / 1000)} seconds",
            duration=duration,
        )

    def multiple_faces(self, now: int, face_count: int) -> DetectionEvent:
        return self.create(
            EventType.MULTIPLE_FACES,
            now,
            f"{face_count} faces detected in frame",
        )

    def object_detected(
        self,
        event_type: EventType,
        now: int,
        label: str,
        confidence: float
    ) -> DetectionEvent:
        return self.create(
            event_type,
            now,
            f"{label} detected with {round_half_up(confidence * 100)}% confidence",
            confidence=confidence,
        )
