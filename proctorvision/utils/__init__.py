"""Utility modules"""

from .frames import decode_base64_frame
from .logging import configure_logging, log_proctor_event, log_startup

__all__ = ["decode_base64_frame", "configure_logging", "log_proctor_event", "log_startup"]
