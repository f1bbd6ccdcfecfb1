"""
Pytest Configuration for ProctorVision Tests
"""
import asyncio
import base64

import cv2
import numpy as np
import pytest

from proctorvision.detectors import (
    BoundingBox,
    ClassificationResult,
    DetectedObject,
    Face,
    FaceDetector,
    ObjectDetector,
)


class FakeFaceDetector(FaceDetector):
    """Returns a fixed list of faces, or raises a fixed error"""

    def __init__(self, faces=None, error=None):
        self.faces = list(faces or [])
        self.error = error
        self.calls = 0
        self.closed = False

    def detect(self, frame):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.faces)

    def close(self):
        self.closed = True


class FakeObjectDetector(ObjectDetector):
    """Returns a fixed list of objects, or raises a fixed error"""

    def __init__(self, objects=None, error=None):
        self.objects = list(objects or [])
        self.error = error
        self.calls = 0
        self.closed = False

    def detect(self, frame):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.objects)

    def close(self):
        self.closed = True


class ScriptedClassifier:
    """Async classifier returning scripted results in order, repeating the last one"""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
        self.closed = False

    async def classify(self, frame):
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


async def wait_until(predicate, timeout=2.0):
    """Poll predicate on the running loop until it holds"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def build_face(eye_offset: float = 0.0, landmarks: bool = True) -> Face:
    """100x100 face box at (100, 100); eyes shifted right by eye_offset px"""
    box = BoundingBox(x_min=100, y_min=100, x_max=200, y_max=200)
    if not landmarks:
        return Face(bounding_box=box)
    left_eye = (135 + eye_offset, 130)
    right_eye = (165 + eye_offset, 130)
    return Face(bounding_box=box, landmarks=(left_eye, right_eye))


@pytest.fixture
def focused_face():
    """Face looking straight at the camera"""
    return build_face(eye_offset=0)


@pytest.fixture
def unfocused_face():
    """Face turned away (eye midpoint 40% of the width off centre)"""
    return build_face(eye_offset=40)


@pytest.fixture
def make_tick(focused_face):
    """Build a ClassificationResult from a face count and (label, confidence) pairs"""
    def _make(faces=0, objects=(), face=None):
        face = face or focused_face
        return ClassificationResult(
            faces=tuple(face for _ in range(faces)),
            objects=tuple(DetectedObject(label, conf) for label, conf in objects),
        )
    return _make


@pytest.fixture
def frame():
    """Blank 640x480 BGR frame"""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def jpeg_base64(frame):
    """The blank frame encoded as base64 JPEG"""
    ok, encoded = cv2.imencode(".jpg", frame)
    assert ok
    return base64.b64encode(encoded.tobytes()).decode("ascii")


@pytest.fixture
def fake_face_detector(focused_face):
    """Face detector reporting a single focused face"""
    return FakeFaceDetector(faces=[focused_face])


@pytest.fixture
def fake_object_detector():
    """Object detector reporting nothing"""
    return FakeObjectDetector()


@pytest.fixture
def make_face():
    """Factory for faces with a chosen eye offset or no landmarks"""
    return build_face
