"""
Proctoring Session - Manages a single monitored interview
"""

import uuid
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from .events import DetectionEvent, EventType
from .scheduler import DetectionScheduler, MonitorHandle, wall_clock_ms
from .scoring import IntegrityScorer
from .sources import FrameSource, LatestFrameBuffer
from .tracker import DetectionState
from .utils.logging import log_event_detected, log_session_start, log_session_end

logger = logging.getLogger(__name__)


def format_duration(ms: int) -> str:
    """Format milliseconds as '1h 2m 3s', or '2m 3s' under an hour."""
    hours = ms // 3600000
    minutes = (ms % 3600000) // 60000
    seconds = (ms % 60000) // 1000

    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    return f"{minutes}m {seconds}s"


class ProctoringSession:
    """
    Manages a single interview session.

    Holds the append-only event log and the monitoring run feeding it.
    The integrity score is always recomputed from the log, never stored.
    """

    def __init__(
        self,
        candidate_name: str,
        scheduler: Optional[DetectionScheduler] = None,
        session_id: Optional[str] = None,
        scorer: Optional[IntegrityScorer] = None,
        now_ms: Callable[[], int] = wall_clock_ms
    ):
        """
        Initialize a new interview session.

        Args:
            candidate_name: Name of the candidate being interviewed
            scheduler: Scheduler driving detection for this session
            session_id: Optional custom session ID (auto-generated if not provided)
            scorer: Integrity scorer (default penalties if not provided)
            now_ms: Clock returning the current time in milliseconds
        """
        candidate_name = (candidate_name or "").strip()
        if not candidate_name:
            raise ValueError("Candidate name is required")

        self.id = session_id or f"INT_{uuid.uuid4().hex[:6].upper()}"
        self.candidate_name = candidate_name
        self.scheduler = scheduler
        self.scorer = scorer or IntegrityScorer()
        self.frame_buffer = LatestFrameBuffer()
        self._now_ms = now_ms

        self.start_time: int = now_ms()
        self.end_time: Optional[int] = None

        self._events: list = []
        self._handle: Optional[MonitorHandle] = None

        log_session_start(self.id, candidate_name)

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def events(self) -> Tuple[DetectionEvent, ...]:
        """Event log in detection order."""
        return tuple(self._events)

    @property
    def integrity_score(self) -> int:
        return self.scorer.compute(self._events)

    @property
    def total_focus_lost_time(self) -> int:
        return self._total_duration(EventType.FOCUS_LOST)

    @property
    def total_absent_time(self) -> int:
        return self._total_duration(EventType.FACE_ABSENT)

    def _total_duration(self, event_type: EventType) -> int:
        return sum(e.duration or 0 for e in self._events if e.type == event_type)

    @property
    def event_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for event in self._events:
            counts[event.type.value] = counts.get(event.type.value, 0) + 1
        return counts

    @property
    def state(self) -> Optional[DetectionState]:
        """Live detection state, None when not monitoring."""
        if self.scheduler is None or self._handle is None:
            return None
        if self.scheduler.handle is not self._handle:
            return None
        return self.scheduler.state

    @property
    def duration_ms(self) -> int:
        end = self.end_time if self.end_time is not None else self._now_ms()
        return end - self.start_time

    def record_event(self, event: DetectionEvent):
        """Append an event to the log. Used as the scheduler's event sink."""
        if not self.is_active:
            raise RuntimeError(f"Session {self.id} is finalized")

        self._events.append(event)
        log_event_detected(self.id, event)

    def start_monitoring(self, frame_source: Optional[FrameSource] = None) -> MonitorHandle:
        """
        Start detection on a frame source.

        Args:
            frame_source: Frames to monitor; defaults to this session's
                          push-fed frame buffer

        Returns:
            Handle of the monitoring run
        """
        if self.scheduler is None:
            raise RuntimeError("Session has no scheduler")
        if not self.is_active:
            raise RuntimeError(f"Session {self.id} is finalized")

        source = frame_source if frame_source is not None else self.frame_buffer
        self._handle = self.scheduler.start(source, self.record_event)
        return self._handle

    def push_frame(self, frame: np.ndarray):
        """Make a frame available to the next tick."""
        if not self.is_active:
            raise RuntimeError(f"Session {self.id} is finalized")
        self.frame_buffer.push(frame)

    def stop_monitoring(self):
        """Stop this session's monitoring run, if any."""
        if self.scheduler is not None and self._handle is not None:
            self.scheduler.stop(self._handle)
        self._handle = None

    def finalize(self) -> Dict[str, Any]:
        """
        Stop monitoring, close the session and return its summary.

        Calling it again returns the same summary.
        """
        if not self.is_active:
            return self.get_summary()

        self.stop_monitoring()
        self.frame_buffer.clear()
        self.end_time = self._now_ms()

        summary = self.get_summary()
        log_session_end(
            self.id,
            summary["integrity_score"],
            summary["total_events"],
            summary["duration_ms"]
        )

        logger.info(f"Session {self.id} finalized: score={summary['integrity_score']}")
        return summary

    def get_summary(self) -> Dict[str, Any]:
        """Session statistics as a JSON-serialisable dict."""
        score = self.integrity_score
        duration_ms = self.duration_ms

        return {
            "session_id": self.id,
            "candidate_name": self.candidate_name,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": duration_ms,
            "duration": format_duration(duration_ms),
            "integrity_score": score,
            "score_label": self.scorer.get_label(score),
            "total_events": len(self._events),
            "event_counts": self.event_counts,
            "total_focus_lost_time": self.total_focus_lost_time,
            "total_absent_time": self.total_absent_time,
        }
