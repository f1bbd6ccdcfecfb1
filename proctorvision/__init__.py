"""
ProctorVision - Live interview proctoring

Samples webcam frames on a fixed cadence, classifies faces and objects,
turns the observations into debounced integrity events and scores the
session from its event log.
"""

from .events import DetectionEvent, EventEmitter, EventType
from .scheduler import DetectionScheduler, MonitorHandle
from .scoring import IntegrityScorer, compute_integrity_score
from .session import ProctoringSession
from .sources import FrameSource, LatestFrameBuffer
from .tracker import DetectionState, StateTracker

__version__ = "1.0.0"

__all__ = [
    "DetectionEvent",
    "EventEmitter",
    "EventType",
    "DetectionScheduler",
    "MonitorHandle",
    "IntegrityScorer",
    "compute_integrity_score",
    "ProctoringSession",
    "FrameSource",
    "LatestFrameBuffer",
    "DetectionState",
    "StateTracker",
]
