"""
Integrity Scorer - Computes the integrity score from a session's event log
"""

import logging
import math
from typing import Any, Dict, Iterable, Optional

from ..events import DetectionEvent, EventType, round_half_up

logger = logging.getLogger(__name__)


class IntegrityScorer:
    """
    Computes an integrity score (0-100) from detection events.

    Formula:
        integrity_score = 100 - sum(penalty(event))

    where span events are penalised by duration up to a cap:
        focus_lost:  min(10, duration_ms / 1000)
        face_absent: min(15, duration_ms / 2000)
    and the rest by a flat amount:
        multiple_faces 5, phone_detected 20, book_detected 15,
        device_detected 10

    Penalties are not rounded individually; only the final total is
    rounded (half-up) and clamped.
    """

    FLAT_PENALTIES: Dict[EventType, float] = {
        EventType.MULTIPLE_FACES: 5.0,
        EventType.PHONE_DETECTED: 20.0,
        EventType.BOOK_DETECTED: 15.0,
        EventType.DEVICE_DETECTED: 10.0,
    }

    # type -> (cap, milliseconds per penalty point)
    DURATION_PENALTIES: Dict[EventType, tuple] = {
        EventType.FOCUS_LOST: (10.0, 1000.0),
        EventType.FACE_ABSENT: (15.0, 2000.0),
    }

    MAX_SCORE = 100

    def __init__(self, flat_penalties: Optional[Dict[EventType, float]] = None):
        """
        Initialize scorer with optional custom flat penalties.

        Args:
            flat_penalties: Optional dict overriding default flat penalties
        """
        self.flat_penalties = self.FLAT_PENALTIES.copy()
        if flat_penalties:
            self.flat_penalties.update(flat_penalties)

    def penalty(self, event: DetectionEvent) -> float:
        """Penalty for a single event."""
        if event.type in self.DURATION_PENALTIES:
            cap, ms_per_point = self.DURATION_PENALTIES[event.type]
            return min(cap, (event.duration or 0) / ms_per_point)
        return self.flat_penalties.get(event.type, 0.0)

    def compute(self, events: Iterable[DetectionEvent]) -> int:
        """
        Compute integrity score from events.

        fsum keeps the total exact, so the score does not depend on
        event order.

        Args:
            events: Full event log of a session

        Returns:
            Integrity score (0-100, higher is better)
        """
        total_penalty = math.fsum(self.penalty(event) for event in events)
        return self._finalize(total_penalty)

    def _finalize(self, total_penalty: float) -> int:
        raw = max(0.0, self.MAX_SCORE - total_penalty)
        return max(0, min(self.MAX_SCORE, round_half_up(raw)))

    def compute_breakdown(self, events: Iterable[DetectionEvent]) -> Dict[str, Any]:
        """
        Compute integrity score with a per-type breakdown.

        Args:
            events: Full event log of a session

        Returns:
            Dict with score, raw score and per-type counts and penalties
        """
        penalties: Dict[EventType, list] = {}
        for event in events:
            penalties.setdefault(event.type, []).append(self.penalty(event))

        breakdown = {
            event_type.value: {
                "count": len(values),
                "penalty": round(math.fsum(values), 2)
            }
            for event_type, values in penalties.items()
        }
        total_penalty = math.fsum(p for values in penalties.values() for p in values)

        return {
            "integrity_score": self._finalize(total_penalty),
            "raw_score": round(self.MAX_SCORE - total_penalty, 2),
            "penalties": breakdown,
            "total_penalty": round(total_penalty, 2)
        }

    def get_label(self, score: int) -> str:
        """
        Convert score to a report label.

        Args:
            score: Integrity score (0-100)

        Returns:
            'Excellent', 'Good', 'Fair' or 'Poor'
        """
        if score >= 80:
            return "Excellent"
        elif score >= 60:
            return "Good"
        elif score >= 40:
            return "Fair"
        else:
            return "Poor"


_default_scorer = IntegrityScorer()


def compute_integrity_score(events: Iterable[DetectionEvent]) -> int:
    """Integrity score (0-100) of an event log using the default penalties."""
    return _default_scorer.compute(events)
