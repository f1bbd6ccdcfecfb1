"""
Detector Base Types - Face/object result shapes and capability interfaces
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned face box in pixel coordinates."""
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    def __post_init__(self):
        if self.x_max <= self.x_min or self.y_max <= self.y_min:
            raise ValueError(
                f"Degenerate bounding box: ({self.x_min}, {self.y_min}, "
                f"{self.x_max}, {self.y_max})"
            )

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def center_x(self) -> float:
        return self.x_min + self.width / 2


@dataclass(frozen=True)
class Face:
    """
    A detected face.

    Landmarks follow the BlazeFace keypoint order: the first two points
    are the eyes, then nose tip, mouth and ear tragions. Detectors that
    produce no keypoints leave ``landmarks`` as None.
    """
    bounding_box: BoundingBox
    landmarks: Optional[Tuple[Point, ...]] = None

    def __post_init__(self):
        if self.landmarks is not None:
            points = tuple((float(x), float(y)) for x, y in self.landmarks)
            if len(points) < 2:
                raise ValueError("Face landmarks must include both eyes")
            object.__setattr__(self, "landmarks", points)

    @property
    def eye_midpoint(self) -> Optional[Point]:
        if self.landmarks is None:
            return None
        (lx, ly), (rx, ry) = self.landmarks[0], self.landmarks[1]
        return ((lx + rx) / 2, (ly + ry) / 2)


@dataclass(frozen=True)
class DetectedObject:
    """An object class seen in a frame."""
    label: str
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {self.confidence}")


class FaceDetector(ABC):
    """Capability: locate faces in a frame."""

    @abstractmethod
    def detect(self, frame: np.ndarray) -> Sequence[Face]:
        """
        Detect faces in a BGR frame.

        May raise on backend failure; the classifier adapter
        converts failures into an empty result.
        """

    def close(self) -> None:
        """Release backend resources."""


class ObjectDetector(ABC):
    """Capability: recognise labelled objects in a frame."""

    @abstractmethod
    def detect(self, frame: np.ndarray) -> List[DetectedObject]:
        """Detect objects in a BGR frame."""

    def close(self) -> None:
        """Release backend resources."""
