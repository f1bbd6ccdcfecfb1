"""
Object Detector - Detects phones, books and other devices using YOLO
"""

import logging
import threading
from typing import List, Optional, Set

import numpy as np

from .base import DetectedObject, ObjectDetector

logger = logging.getLogger(__name__)

# COCO classes relevant to an interview; everything else is ignored
TRACKED_LABELS: Set[str] = {
    'cell phone',
    'book',
    'laptop',
    'tv',
    'remote',
    'keyboard'
}

# The cached YOLO model is shared between sessions
_predict_lock = threading.Lock()


class YoloObjectDetector(ObjectDetector):
    """
    Detects interview-relevant objects using a COCO-trained YOLO model.

    Tracked objects:
    - cell phone
    - book
    - laptop, tv, remote, keyboard (other devices)
    """

    TRACKED_LABELS: Set[str] = TRACKED_LABELS

    def __init__(self, model_path: Optional[str] = None, confidence: float = 0.25):
        """
        Initialize object detector.

        Args:
            model_path: Path to YOLO model weights. If None, uses default from model_loader.
            confidence: Minimum confidence for YOLO to report a box. Kept below the
                        event threshold so weak sightings still show in the live state.
        """
        self.confidence = confidence
        self.model = None
        self._model_path = model_path
        self._model_loaded = False

    def _ensure_model(self):
        """Lazy load YOLO model"""
        if self.model is not None or self._model_loaded:
            return

        try:
            if self._model_path:
                from ultralytics import YOLO
                self.model = YOLO(self._model_path)
            else:
                from ..models import get_yolo_model
                self.model = get_yolo_model()
            logger.info("YOLO model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load YOLO model: {e}")
        self._model_loaded = True  # Don't retry

    def detect(self, frame: np.ndarray) -> List[DetectedObject]:
        """
        Detect tracked objects in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            One DetectedObject per box whose class is tracked
        """
        if frame is None or frame.size == 0:
            return []

        self._ensure_model()
        if self.model is None:
            return []

        with _predict_lock:
            results = self.model.predict(frame, conf=self.confidence, verbose=False)

        detections: List[DetectedObject] = []
        for result in results:
            if result.boxes is None:
                continue

            for box in result.boxes:
                cls_id = int(box.cls[0])
                name = self.model.names.get(cls_id, f"class_{cls_id}").lower()
                if name not in self.TRACKED_LABELS:
                    continue
                detections.append(DetectedObject(label=name, confidence=float(box.conf[0])))

        return detections
