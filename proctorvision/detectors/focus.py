"""
Focus Estimator - Decides whether the candidate faces the screen

Heuristic: when the candidate looks away, the midpoint between the eyes
drifts horizontally from the centre of the face box. An offset below 30%
of the box width counts as focused.
"""

from typing import Sequence

from .base import Face

FOCUS_DEVIATION_LIMIT = 0.3


def focus_deviation(face: Face) -> float:
    """
    Horizontal offset of the eye midpoint from the face-box centre,
    as a fraction of box width. 0.0 when the face has no landmarks.
    """
    midpoint = face.eye_midpoint
    if midpoint is None:
        return 0.0
    box = face.bounding_box
    return abs(midpoint[0] - box.center_x) / box.width


def is_focused(faces: Sequence[Face], limit: float = FOCUS_DEVIATION_LIMIT) -> bool:
    """
    Args:
        faces: Faces in the current frame; only the first is considered
        limit: Maximum deviation still counted as focused

    Returns:
        False with no faces, True for a face without landmarks,
        otherwise whether the deviation is below ``limit``
    """
    if not faces:
        return False

    face = faces[0]
    if face.landmarks is None:
        return True

    return focus_deviation(face) < limit
