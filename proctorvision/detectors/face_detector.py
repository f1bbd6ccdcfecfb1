"""
Face Detector - Detects faces using MediaPipe face detection

Each detection yields a bounding box and six keypoints (eyes, nose tip,
mouth, ear tragions), the same layout BlazeFace produces.
"""

import logging
import threading
from typing import List, Optional

import cv2
import numpy as np

from .base import BoundingBox, Face, FaceDetector

logger = logging.getLogger(__name__)


class MediaPipeFaceDetector(FaceDetector):
    """
    Face detector backed by MediaPipe's short-range BlazeFace model.

    Provides:
    - Face count (for multi-person detection)
    - Face presence (for absence detection)
    - Eye keypoints (for focus estimation)
    """

    def __init__(self, min_confidence: Optional[float] = None):
        """
        Initialize face detector.

        Args:
            min_confidence: Minimum detection confidence.
                            If None, uses FACE_DETECTION_CONFIDENCE from settings.
        """
        self.min_confidence = min_confidence
        self._detection = None
        self._model_loaded = False
        # Serialises inference against close(); the graph is not thread-safe
        self._lock = threading.Lock()

    def _ensure_model(self):
        """Lazy load the MediaPipe graph"""
        if self._detection is not None or self._model_loaded:
            return

        try:
            from ..models import create_face_detection
            if self.min_confidence is None:
                self._detection = create_face_detection()
            else:
                self._detection = create_face_detection(self.min_confidence)
        except Exception as e:
            logger.error(f"Failed to load MediaPipe face detection: {e}")
        self._model_loaded = True  # Don't retry

    def detect(self, frame: np.ndarray) -> List[Face]:
        """
        Detect faces in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            Faces with pixel-space boxes and keypoints
        """
        if frame is None or frame.size == 0:
            return []

        height, width = frame.shape[:2]
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        with self._lock:
            self._ensure_model()
            if self._detection is None:
                return []
            results = self._detection.process(rgb)

        faces: List[Face] = []
        for detection in results.detections or []:
            face = self._to_face(detection, width, height)
            if face is not None:
                faces.append(face)

        return faces

    def _to_face(self, detection, width: int, height: int) -> Optional[Face]:
        """Convert a MediaPipe detection to a Face, dropping malformed ones"""
        location = detection.location_data
        box = location.relative_bounding_box

        try:
            bounding_box = BoundingBox(
                x_min=box.xmin * width,
                y_min=box.ymin * height,
                x_max=(box.xmin + box.width) * width,
                y_max=(box.ymin + box.height) * height,
            )
            keypoints = [(kp.x * width, kp.y * height) for kp in location.relative_keypoints]
            return Face(bounding_box=bounding_box, landmarks=tuple(keypoints) or None)
        except ValueError as e:
            logger.warning(f"Dropping malformed face detection: {e}")
            return None

    def close(self) -> None:
        """Release the graph, waiting for an in-flight detect() to finish"""
        with self._lock:
            if self._detection is not None:
                self._detection.close()
                self._detection = None
