"""Detector modules for interview proctoring"""

from .base import BoundingBox, Face, DetectedObject, FaceDetector, ObjectDetector
from .adapter import ClassifierAdapter, ClassificationResult
from .face_detector import MediaPipeFaceDetector
from .object_detector import YoloObjectDetector, TRACKED_LABELS
from .focus import is_focused, focus_deviation

__all__ = [
    "BoundingBox",
    "Face",
    "DetectedObject",
    "FaceDetector",
    "ObjectDetector",
    "ClassifierAdapter",
    "ClassificationResult",
    "MediaPipeFaceDetector",
    "YoloObjectDetector",
    "TRACKED_LABELS",
    "is_focused",
    "focus_deviation"
]
