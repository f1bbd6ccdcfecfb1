"""
Frame Decoding - Turns base64 webcam captures into BGR frames
"""

import base64
import binascii
import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def decode_base64_frame(frame_base64: str) -> Optional[np.ndarray]:
    """
    Decode a base64 encoded JPEG/PNG capture into a BGR image.

    Accepts both bare base64 and data URLs
    (``data:image/jpeg;base64,...``) as produced by canvas.toDataURL().

    Args:
        frame_base64: Encoded image

    Returns:
        BGR image, or None if the payload is not a decodable image
    """
    if not frame_base64:
        return None

    if frame_base64.startswith("data:"):
        _, _, frame_base64 = frame_base64.partition(",")

    try:
        frame_bytes = base64.b64decode(frame_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Invalid base64 frame payload: {e}")
        return None

    frame_array = np.frombuffer(frame_bytes, dtype=np.uint8)
    if frame_array.size == 0:
        return None

    frame = cv2.imdecode(frame_array, cv2.IMREAD_COLOR)
    if frame is None or frame.size == 0:
        return None

    return frame
