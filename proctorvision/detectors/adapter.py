"""
Classifier Adapter - Async, fail-open access to the face and object detectors

Failure policy: any exception raised by a detector is logged and the call
returns an empty list, as if nothing were in the frame. The next tick
retries naturally. This keeps the pipeline running through transient
inference errors, at the cost of not telling "no face" apart from
"detector failed" (such a failure can open an absence span).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .base import DetectedObject, Face, FaceDetector, ObjectDetector
from .object_detector import TRACKED_LABELS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """Classifier output for one tick."""
    faces: Tuple[Face, ...] = ()
    objects: Tuple[DetectedObject, ...] = ()

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def labels(self) -> List[str]:
        return [obj.label for obj in self.objects]


class ClassifierAdapter:
    """
    Wraps a FaceDetector and an ObjectDetector behind async calls.

    Detector backends are blocking, so each call runs in a worker
    thread to keep the event loop free while inference is in flight.
    """

    def __init__(
        self,
        face_detector: FaceDetector,
        object_detector: ObjectDetector,
        tracked_labels: Optional[Iterable[str]] = None
    ):
        """
        Args:
            face_detector: Face capability provider
            object_detector: Object capability provider
            tracked_labels: Object labels to keep; defaults to the
                            interview-relevant COCO classes
        """
        self.face_detector = face_detector
        self.object_detector = object_detector
        self.tracked_labels = set(tracked_labels) if tracked_labels is not None else set(TRACKED_LABELS)

    @classmethod
    def from_settings(cls) -> "ClassifierAdapter":
        """Build an adapter over the default MediaPipe and YOLO backends."""
        from ..config import settings
        from .face_detector import MediaPipeFaceDetector
        from .object_detector import YoloObjectDetector

        return cls(
            face_detector=MediaPipeFaceDetector(settings.FACE_DETECTION_CONFIDENCE),
            object_detector=YoloObjectDetector(),
        )

    async def detect_faces(self, frame: np.ndarray) -> List[Face]:
        """Faces in the frame, or [] if the detector fails."""
        try:
            faces = await asyncio.to_thread(self.face_detector.detect, frame)
        except Exception as e:
            logger.warning(f"Face detection error: {e}")
            return []

        return [face for face in faces if isinstance(face, Face)]

    async def detect_objects(self, frame: np.ndarray) -> List[DetectedObject]:
        """Tracked objects in the frame, or [] if the detector fails."""
        try:
            objects = await asyncio.to_thread(self.object_detector.detect, frame)
        except Exception as e:
            logger.warning(f"Object detection error: {e}")
            return []

        return [obj for obj in objects if obj.label in self.tracked_labels]

    async def classify(self, frame: np.ndarray) -> ClassificationResult:
        """Run both detectors on a frame."""
        faces, objects = await asyncio.gather(
            self.detect_faces(frame),
            self.detect_objects(frame),
        )
        return ClassificationResult(faces=tuple(faces), objects=tuple(objects))

    def close(self):
        """Release detector resources"""
        for detector in (self.face_detector, self.object_detector):
            try:
                detector.close()
            except Exception as e:
                logger.warning(f"Error closing {type(detector).__name__}: {e}")
