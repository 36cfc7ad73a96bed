import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from recruitment.core.config import get_settings
from recruitment.core.logging import SERVICE_NAME
from recruitment.db.redis import redis_available

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness for the load balancer.

    Returns 503 once SIGTERM is received so traffic drains before shutdown.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": SERVICE_NAME},
        )
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness: Redis answers PING and the status monitor is running (when enabled)."""
    monitor = getattr(request.app.state, "status_monitor", None)
    checks = {
        "redis": await redis_available(),
        "status_monitor": not get_settings().status_monitor_enabled
        or bool(monitor is not None and monitor.running),
    }

    all_healthy = all(checks.values())
    if not all_healthy:
        logger.warning("readiness_degraded", checks=checks)

    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
