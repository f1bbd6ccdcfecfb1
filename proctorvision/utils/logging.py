"""
Proctoring Logger - Logs proctoring lifecycle events and detections
"""

import logging
import sys
from datetime import datetime
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BG_RED = "\033[41m"


class ColoredFormatter(logging.Formatter):
    """Colored formatter for terminal output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.WHITE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BG_RED + Colors.WHITE,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        level_str = f"{color}{record.levelname:8}{Colors.RESET}"
        time_str = f"{Colors.DIM}{timestamp}{Colors.RESET}"
        name_str = f"{Colors.CYAN}{record.name}{Colors.RESET}"

        message = f"{time_str} {level_str} [{name_str}] {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def configure_logging(level: str = "INFO") -> None:
    """Install the colored formatter on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    root.addHandler(handler)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (session_start, detection, session_end, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, candidate_name: str):
    """Log session start event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={"candidate": candidate_name}
    )


def log_session_end(session_id: str, integrity_score: int, total_events: int, duration_ms: int):
    """Log session end event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "integrity_score": integrity_score,
            "events": total_events,
            "duration_s": round(duration_ms / 1000, 1)
        }
    )


def log_event_detected(session_id: str, event) -> None:
    """Log a detection event appended to a session log"""
    details: Dict[str, Any] = {"type": event.type.value, "at": event.timestamp}
    if event.duration is not None:
        details["duration_ms"] = event.duration
    if event.confidence is not None:
        details["confidence"] = round(event.confidence, 2)

    log_proctor_event(
        session_id=session_id,
        event_type="detection",
        details=details,
        level="warning"
    )


def log_startup(app_name: str, port: int):
    """Print the service startup banner"""
    print(f"\n{Colors.BOLD}{Colors.GREEN}{'=' * 50}{Colors.RESET}")
    print(f"{Colors.BOLD}  {app_name} running on port {port}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.GREEN}{'=' * 50}{Colors.RESET}\n")
