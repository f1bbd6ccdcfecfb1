"""
State Tracker - Turns per-tick classifier output into integrity events

Two hysteresis axes are tracked independently:

- presence: a face_absent event is raised when the face comes back after
  being gone for more than ABSENCE_THRESHOLD_MS
- focus: a focus_lost event is raised when focus returns after being lost
  for more than FOCUS_THRESHOLD_MS (focus is only defined while a face
  is present)

Span events fire at the end of the span and carry the span start as their
timestamp. Multiple faces and tracked objects fire on every tick they are
seen, with no debouncing.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .detectors.adapter import ClassificationResult
from .detectors.focus import FOCUS_DEVIATION_LIMIT, is_focused
from .events import DetectionEvent, EventEmitter, EventType

logger = logging.getLogger(__name__)

ABSENCE_THRESHOLD_MS = 10000
FOCUS_THRESHOLD_MS = 5000
OBJECT_CONFIDENCE_THRESHOLD = 0.5

OBJECT_EVENT_TYPES = {
    "cell phone": EventType.PHONE_DETECTED,
    "book": EventType.BOOK_DETECTED,
}


@dataclass(frozen=True)
class DetectionState:
    """Live display snapshot."""
    is_face_present: bool
    is_focused: bool
    face_count: int
    detected_objects: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "is_face_present": self.is_face_present,
            "is_focused": self.is_focused,
            "face_count": self.face_count,
            "detected_objects": list(self.detected_objects),
        }


@dataclass
class TrackerState:
    """
    Mutable tracking state, owned by a single StateTracker.

    ``absent_start`` is set only while no face is present and
    ``focus_lost_start`` only while a face is present but unfocused.
    """
    is_face_present: bool = False
    is_focused: bool = True
    face_count: int = 0
    detected_objects: List[str] = field(default_factory=list)
    last_face_time: Optional[int] = None
    last_focus_time: Optional[int] = None
    focus_lost_start: Optional[int] = None
    absent_start: Optional[int] = None


class StateTracker:
    """
    Consumes one ClassificationResult per tick and returns the events
    completed on that tick.

    Not reentrant: callers must apply updates one at a time, in tick order.
    """

    def __init__(
        self,
        emitter: Optional[EventEmitter] = None,
        absence_threshold_ms: int = ABSENCE_THRESHOLD_MS,
        focus_threshold_ms: int = FOCUS_THRESHOLD_MS,
        object_confidence_threshold: float = OBJECT_CONFIDENCE_THRESHOLD,
        focus_deviation_limit: float = FOCUS_DEVIATION_LIMIT
    ):
        self.emitter = emitter or EventEmitter()
        self.absence_threshold_ms = absence_threshold_ms
        self.focus_threshold_ms = focus_threshold_ms
        self.object_confidence_threshold = object_confidence_threshold
        self.focus_deviation_limit = focus_deviation_limit
        self.state = TrackerState()

    def update(self, tick: ClassificationResult, now: int) -> List[DetectionEvent]:
        """
        Apply one tick.

        Args:
            tick: Classifier output for the tick
            now: Tick time in milliseconds

        Returns:
            Events completed on this tick, in emission order
        """
        events: List[DetectionEvent] = []
        state = self.state

        face_count = tick.face_count
        face_present = face_count > 0

        # Presence axis
        self._update_presence(face_present, now, events)
        state.is_face_present = face_present
        state.face_count = face_count

        # Focus axis
        if face_present:
            focused = is_focused(tick.faces, self.focus_deviation_limit)
            self._update_focus(focused, now, events)
            state.is_focused = focused
        else:
            # No face, no focus; an open focus-lost span ends here
            self._close_focus_span(now, events)
            state.is_focused = False

        # Multiplicity
        if face_count > 1:
            events.append(self.emitter.multiple_faces(now, face_count))

        # Objects
        for obj in tick.objects:
            if obj.confidence > self.object_confidence_threshold:
                event_type = OBJECT_EVENT_TYPES.get(obj.label, EventType.DEVICE_DETECTED)
                events.append(
                    self.emitter.object_detected(event_type, now, obj.label, obj.confidence)
                )

        state.detected_objects = tick.labels

        if events:
            logger.debug(f"Tick at {now} produced {len(events)} event(s)")

        return events

    def _update_presence(self, face_present: bool, now: int, events: List[DetectionEvent]):
        state = self.state

        if face_present:
            state.last_face_time = now
            if state.absent_start is not None:
                elapsed = now - state.absent_start
                if elapsed > self.absence_threshold_ms:
                    events.append(self.emitter.face_absent(state.absent_start, elapsed))
                state.absent_start = None
        elif state.absent_start is None:
            state.absent_start = now

    def _update_focus(self, focused: bool, now: int, events: List[DetectionEvent]):
        state = self.state

        if focused:
            state.last_focus_time = now
            self._close_focus_span(now, events)
        elif state.focus_lost_start is None:
            state.focus_lost_start = now

    def _close_focus_span(self, now: int, events: List[DetectionEvent]):
        state = self.state

        if state.focus_lost_start is None:
            return
        elapsed = now - state.focus_lost_start
        if elapsed > self.focus_threshold_ms:
            events.append(self.emitter.focus_lost(state.focus_lost_start, elapsed))
        state.focus_lost_start = None

    def snapshot(self) -> DetectionState:
        """Current live state for display."""
        return DetectionState(
            is_face_present=self.state.is_face_present,
            is_focused=self.state.is_focused,
            face_count=self.state.face_count,
            detected_objects=tuple(self.state.detected_objects),
        )
