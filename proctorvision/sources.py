"""
Frame Sources - Read-only frame handles consumed by the scheduler
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Anything the scheduler can sample a frame from once per tick."""

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Latest BGR frame, or None if no frame is available."""


class LatestFrameBuffer(FrameSource):
    """
    Keeps only the newest pushed frame.

    Producers (e.g. the HTTP frame endpoint) call push(); the scheduler
    samples with read(). Access is a single reference swap, so no lock
    is needed between the two sides.
    """

    def __init__(self):
        self._current_frame: Optional[np.ndarray] = None
        self.frames_received: int = 0

    def push(self, frame: np.ndarray) -> None:
        """Replace the current frame."""
        if frame is None or frame.size == 0:
            raise ValueError("Cannot push an empty frame")
        self._current_frame = frame
        self.frames_received += 1

    def read(self) -> Optional[np.ndarray]:
        return self._current_frame

    def clear(self) -> None:
        """Drop the held frame."""
        self._current_frame = None
