"""Recruitment Timeline backend: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# CRITICAL ORDER: configure_structlog MUST be called before all other app imports
# to avoid the structlog cache pitfall (structlog caches the processor chain on first use).
from recruitment.core.logging import configure_structlog
from recruitment.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from recruitment.api.routes import api_router
from recruitment.core.config import Settings, get_settings
from recruitment.core.exceptions import (
    OverlappingPhaseError,
    PhaseNotFoundError,
    RecruitmentError,
    TimelineNotFoundError,
)
from recruitment.db import close_redis, init_redis
from recruitment.middleware.correlation import (
    setup_correlation_middleware,
    get_correlation_id,
)
from recruitment.services.event_bridge import EventBridge
from recruitment.services.notification_publisher import NotificationPublisher
from recruitment.services.status_monitor import StatusMonitor
from recruitment.services.timeline_repository import TimelineRepository
from recruitment.services.timeline_service import TimelineService

logger = structlog.get_logger(__name__)


async def build_components(app: FastAPI, redis, settings: Settings) -> None:
    """Construct the repository once and inject it into every component.

    Loads the persisted registry before anything can read it.
    """
    repository = TimelineRepository(redis, storage_key=settings.timelines_key)
    await repository.load()

    service = TimelineService(
        repository,
        reject_overlapping_phases=settings.reject_overlapping_phases,
    )
    publisher = NotificationPublisher(
        redis,
        events_channel=settings.events_channel,
        notifications_channel=settings.notifications_channel,
    )

    app.state.timeline_repository = repository
    app.state.timeline_service = service
    app.state.notification_publisher = publisher
    app.state.status_monitor = StatusMonitor(
        service,
        publisher,
        interval=settings.status_check_interval_seconds,
    )
    app.state.event_bridge = EventBridge(
        service,
        redis,
        channel=settings.applications_channel,
        publisher=publisher,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM flips this so /api/health returns 503 while connections drain
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    # Startup
    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    redis = await init_redis()
    await build_components(app, redis, settings)
    logger.info("timelines_ready", count=len(app.state.timeline_repository))

    if settings.status_monitor_enabled:
        # Catch up on transitions missed while the process was down
        await app.state.status_monitor.sweep(trigger="startup")
        app.state.status_monitor.start()

    if settings.event_bridge_enabled:
        app.state.event_bridge.start()
        logger.info("event_bridge_started", channel=settings.applications_channel)

    yield

    # Shutdown
    logger.info("shutdown_begin")
    await app.state.event_bridge.stop()
    await app.state.status_monitor.stop()
    await close_redis()
    logger.info("shutdown_complete")


def _error_response(request: Request, status_code: int, detail, **log_fields) -> JSONResponse:
    debug_id = str(uuid.uuid4())
    logger.warning(
        "request_failed",
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        **log_fields,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "debug_id": debug_id},
    )


async def recruitment_exception_handler(request: Request, exc: RecruitmentError) -> JSONResponse:
    """Map domain errors: missing timeline/phase -> 404, overlapping window -> 409."""
    if isinstance(exc, (TimelineNotFoundError, PhaseNotFoundError)):
        status_code = 404
    elif isinstance(exc, OverlappingPhaseError):
        status_code = 409
    else:
        status_code = 400
    return _error_response(request, status_code, str(exc), error_type=type(exc).__name__)


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Service-level validation failures (e.g. import payloads) -> 422."""
    return _error_response(
        request,
        422,
        exc.errors(include_url=False, include_context=False, include_input=False),
        error_type=type(exc).__name__,
        error_count=exc.error_count(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking.

    Logs errors server-side with full context, returns sanitized response to client.
    """
    debug_id = str(uuid.uuid4())
    corr_id = get_correlation_id()

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=corr_id,
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    # Return sanitized response (no stack traces, no secrets)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())
    corr_id = get_correlation_id()

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=corr_id,
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    # Return generic 500 (no internal details leaked)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Recruitment timelines - phase windows, role status, and recruitment buttons",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, *settings.cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    # Exception handlers
    app.exception_handler(RecruitmentError)(recruitment_exception_handler)
    app.exception_handler(ValidationError)(validation_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    # Include API routes
    app.include_router(api_router, prefix="/api")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "recruitment.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
