"""
ProctorVision Service - FastAPI Application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import time

from .config import settings
from .api import router as proctor_router, shutdown_sessions
from .utils.logging import configure_logging, log_startup, Colors

logger = logging.getLogger(__name__)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Live interview proctoring from webcam frames",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


# ============================================================================
# Request Logging Middleware
# ============================================================================

# Polled endpoints stay out of the request log
QUIET_PATHS = {"/health", "/favicon.ico", "/api/interview/frame"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests with timing."""
    start = time.time()
    method = request.method
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"RequestError {method} {path}: {e}")
        raise

    if path not in QUIET_PATHS and not path.startswith("/api/interview/state"):
        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"{method} {path} -> {response.status_code} in {duration_ms}ms")

    return response


# CORS middleware - allow all origins for LAN access
# Note: When using allow_origins=["*"], credentials must be False
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(proctor_router)


@app.on_event("startup")
async def startup_event():
    """Configure logging and report detector availability."""
    from .models.model_loader import check_models

    configure_logging(settings.LOG_LEVEL)
    log_startup(settings.APP_NAME, settings.PORT)

    print(f"{Colors.DIM}Configuration:{Colors.RESET}")
    print(f"  Tick interval: {Colors.CYAN}{settings.TICK_INTERVAL_SECONDS}s{Colors.RESET}")
    print(f"  Absence threshold: {Colors.CYAN}{settings.ABSENCE_THRESHOLD_MS}ms{Colors.RESET}")
    print(f"  Focus threshold: {Colors.CYAN}{settings.FOCUS_THRESHOLD_MS}ms{Colors.RESET}")
    print(f"  YOLO model: {Colors.CYAN}{settings.YOLO_MODEL_PATH}{Colors.RESET}")

    for name, available in check_models().items():
        mark = f"{Colors.GREEN}✓" if available else f"{Colors.RED}✗"
        print(f"  {mark} {name}{Colors.RESET}")
    print()


@app.on_event("shutdown")
async def shutdown_event():
    """Finalize sessions that are still monitoring."""
    await shutdown_sessions()
    logger.info("All proctoring sessions finalized")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0"
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "docs": "/docs" if settings.DEBUG else None,
        "proctoring": "/api/interview"
    }


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run("proctorvision.main:app", host=settings.HOST, port=settings.PORT)
