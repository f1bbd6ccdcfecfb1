"""
Model Loader - Lazy loading and caching of detector backends
"""

import os
import logging
from functools import lru_cache

from ..config import settings

logger = logging.getLogger(__name__)

# Default model directory (relative to this file's directory)
MODELS_DIR = os.path.join(os.path.dirname(__file__), settings.MODELS_DIR)


@lru_cache(maxsize=1)
def get_yolo_model():
    """
    Get YOLO model for object detection.

    Looks for the configured weights in the models directory, then the
    working directory. Falls back to the stock yolov8n checkpoint, which
    ultralytics downloads on first use.

    Returns:
        YOLO model instance
    """
    from ultralytics import YOLO

    possible_paths = [
        os.path.join(MODELS_DIR, settings.YOLO_MODEL_PATH),
        settings.YOLO_MODEL_PATH,
    ]

    for path in possible_paths:
        if os.path.exists(path):
            logger.info(f"Loading YOLO model from: {path}")
            return YOLO(path)

    logger.warning(f"{settings.YOLO_MODEL_PATH} not found, using yolov8n as fallback")
    return YOLO("yolov8n.pt")


def create_face_detection(min_confidence: float = settings.FACE_DETECTION_CONFIDENCE):
    """
    Create a MediaPipe face detection graph.

    Graphs keep per-stream state and are not shared between detectors,
    so this is not cached.

    Args:
        min_confidence: Minimum detection confidence

    Returns:
        mediapipe FaceDetection instance
    """
    import mediapipe as mp

    detection = mp.solutions.face_detection.FaceDetection(
        model_selection=0,  # short-range model, faces within ~2m
        min_detection_confidence=min_confidence
    )
    logger.info("MediaPipe FaceDetection initialized")
    return detection


def check_models() -> dict:
    """
    Check which detector backends are available.

    Returns:
        Dict with model status
    """
    status = {
        "yolo_model": False,
        "ultralytics": False,
        "mediapipe": False,
    }

    for path in [
        os.path.join(MODELS_DIR, settings.YOLO_MODEL_PATH),
        settings.YOLO_MODEL_PATH
    ]:
        if os.path.exists(path):
            status["yolo_model"] = True
            break

    try:
        import ultralytics  # noqa: F401
        status["ultralytics"] = True
    except ImportError:
        pass

    try:
        import mediapipe  # noqa: F401
        status["mediapipe"] = True
    except ImportError:
        pass

    return status
