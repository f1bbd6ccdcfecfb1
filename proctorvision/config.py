"""
ProctorVision Configuration Settings

Thresholds for the detection state machine and the default
model backends:
- Faces: MediaPipe face detection (6 keypoints per face)
- Objects: ultralytics YOLOv8n (COCO classes)
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration for the interview proctoring service."""

    # API Settings
    APP_NAME: str = "ProctorVision"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    # Scheduler Settings
    TICK_INTERVAL_SECONDS: float = 1.0

    # Hysteresis thresholds (milliseconds)
    ABSENCE_THRESHOLD_MS: int = 10000
    FOCUS_THRESHOLD_MS: int = 5000

    # Focus estimation: max eye-midpoint offset as a fraction of face width
    FOCUS_DEVIATION_LIMIT: float = 0.3

    # Detection Settings
    OBJECT_CONFIDENCE_THRESHOLD: float = 0.5
    FACE_DETECTION_CONFIDENCE: float = 0.5

    # Model Settings
    YOLO_MODEL_PATH: str = "yolov8n.pt"
    MODELS_DIR: str = "weights"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
