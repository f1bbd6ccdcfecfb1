"""
Interview Proctoring API - FastAPI endpoints for live interview monitoring

Endpoints:
- POST /api/interview/start - Start a session and its detection scheduler
- POST /api/interview/frame - Push the latest webcam frame
- GET /api/interview/state/{session_id} - Live detection state and score
- GET /api/interview/events/{session_id} - Full event log
- POST /api/interview/stop - Stop monitoring and get the session summary
"""

import asyncio
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .detectors import ClassifierAdapter
from .scheduler import DetectionScheduler
from .session import ProctoringSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/interview", tags=["Interview Proctoring"])

# In-memory session storage
_sessions: Dict[str, ProctoringSession] = {}

# Finalized sessions stay readable for this long
SESSION_RETENTION_SECONDS = 300


def create_classifier() -> ClassifierAdapter:
    """Classifier for a new session's scheduler."""
    return ClassifierAdapter.from_settings()


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start an interview session"""
    candidate_name: str = Field(..., description="Name of the candidate")


class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: str
    status: str
    message: str


class PushFrameRequest(BaseModel):
    """Request to submit a webcam frame"""
    session_id: str = Field(..., description="Session ID from /start")
    frame_base64: str = Field(..., description="Base64 encoded JPEG frame")


class PushFrameResponse(BaseModel):
    """Response after accepting a frame"""
    accepted: bool
    frames_received: int


class DetectionStateModel(BaseModel):
    """Live detection snapshot"""
    is_face_present: bool
    is_focused: bool
    face_count: int
    detected_objects: List[str]


class SessionStateResponse(BaseModel):
    """Current session state"""
    session_id: str
    is_active: bool
    state: Optional[DetectionStateModel] = None
    integrity_score: int
    total_events: int
    duration_seconds: float


class EventModel(BaseModel):
    """A single detection event"""
    id: str
    type: str
    timestamp: int
    duration: Optional[int] = None
    confidence: Optional[float] = None
    description: str


class EventLogResponse(BaseModel):
    """Full event log of a session"""
    session_id: str
    integrity_score: int
    events: List[EventModel]


class StopSessionRequest(BaseModel):
    """Request to stop an interview session"""
    session_id: str


class StopSessionResponse(BaseModel):
    """Final session summary"""
    session_id: str
    candidate_name: str
    start_time: int
    end_time: Optional[int] = None
    duration_ms: int
    duration: str
    integrity_score: int
    score_label: str
    total_events: int
    event_counts: Dict[str, int]
    total_focus_lost_time: int
    total_absent_time: int


class ModelStatusResponse(BaseModel):
    """Detector backend availability"""
    yolo_model: bool
    ultralytics: bool
    mediapipe: bool


def _get_session(session_id: str) -> ProctoringSession:
    session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest):
    """
    Start a new interview session.

    Creates the session and starts its detection scheduler on the
    session's frame buffer; frames arrive through /frame.
    """
    if not request.candidate_name.strip():
        raise HTTPException(status_code=400, detail="Candidate name is required")

    try:
        scheduler = DetectionScheduler(create_classifier())
        session = ProctoringSession(
            candidate_name=request.candidate_name,
            scheduler=scheduler
        )
        session.start_monitoring()
    except Exception as e:
        logger.error(f"Failed to start interview session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _sessions[session.id] = session
    logger.info(f"Started interview session: {session.id}")

    return StartSessionResponse(
        session_id=session.id,
        status="active",
        message="Interview monitoring started successfully"
    )


@router.post("/frame", response_model=PushFrameResponse)
async def push_frame(request: PushFrameRequest):
    """
    Submit the latest webcam frame.

    The frame is held until the next scheduler tick; frames pushed
    faster than the tick rate replace each other.
    """
    from .utils.frames import decode_base64_frame

    session = _get_session(request.session_id)

    if not session.is_active:
        raise HTTPException(status_code=400, detail="Session is not active")

    frame = decode_base64_frame(request.frame_base64)
    if frame is None:
        raise HTTPException(status_code=400, detail="Invalid frame data")

    session.push_frame(frame)

    return PushFrameResponse(
        accepted=True,
        frames_received=session.frame_buffer.frames_received
    )


@router.get("/state/{session_id}", response_model=SessionStateResponse)
async def get_session_state(session_id: str):
    """
    Get the live detection state of a session.
    """
    session = _get_session(session_id)
    state = session.state

    return SessionStateResponse(
        session_id=session.id,
        is_active=session.is_active,
        state=DetectionStateModel(**state.to_dict()) if state else None,
        integrity_score=session.integrity_score,
        total_events=len(session.events),
        duration_seconds=session.duration_ms / 1000
    )


@router.get("/events/{session_id}", response_model=EventLogResponse)
async def get_session_events(session_id: str):
    """
    Get the full event log of a session, in detection order.
    """
    session = _get_session(session_id)
    events = session.events

    return EventLogResponse(
        session_id=session.id,
        integrity_score=session.scorer.compute(events),
        events=[EventModel(**event.to_dict()) for event in events]
    )


@router.post("/stop", response_model=StopSessionResponse)
async def stop_session(request: StopSessionRequest):
    """
    Stop an interview session and get its summary.

    Stopping an already stopped session returns the same summary.
    """
    session = _get_session(request.session_id)

    try:
        summary = session.finalize()
    except Exception as e:
        logger.error(f"Error stopping session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    await _release_scheduler(session)

    asyncio.get_running_loop().call_later(
        SESSION_RETENTION_SECONDS, _cleanup_session, session.id
    )

    return StopSessionResponse(**summary)


@router.get("/models-status", response_model=ModelStatusResponse)
async def get_models_status():
    """
    Check which detector backends are available.
    """
    from .models.model_loader import check_models

    return ModelStatusResponse(**check_models())


@router.get("/health")
async def health_check():
    """Health check for the proctoring module"""
    return {
        "status": "healthy",
        "active_sessions": sum(1 for s in _sessions.values() if s.is_active),
        "module": "interview_proctoring"
    }


# ============== Lifecycle ==============

def _cleanup_session(session_id: str):
    """Forget a finalized session"""
    session = _sessions.get(session_id)
    if session is not None and not session.is_active:
        del _sessions[session_id]
        logger.info(f"Cleaned up session: {session_id}")


async def _release_scheduler(session: ProctoringSession):
    """Wait for the session's scheduler tasks to unwind, then close its detectors"""
    if session.scheduler is None:
        return
    await session.scheduler.shutdown()
    await asyncio.to_thread(session.scheduler.classifier.close)


async def shutdown_sessions():
    """Finalize every session and release its detectors (application shutdown)."""
    for session in list(_sessions.values()):
        if session.is_active:
            session.finalize()
        await _release_scheduler(session)
    _sessions.clear()
