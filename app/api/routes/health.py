"""
Health Check Endpoints

Provides health, readiness, and liveness probes for monitoring,
load balancers, and Kubernetes.

The database is required: bookings cannot be taken without it. Redis is
optional: sessions fall back to process memory, so a Redis outage reports
"degraded" without failing readiness.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.infra.database import check_db_health
from app.infra.redis import check_redis_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

# Track application start time for uptime calculation
_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Set application start time. Called once on startup."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    """Get application uptime in seconds."""
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness check response with dependency status."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


class DetailedHealthResponse(BaseModel):
    """Detailed health check with all system info."""
    status: str
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: Optional[float]
    checks: dict[str, str]
    config: dict[str, str]


async def _dependency_checks(request: Request) -> dict[str, str]:
    """Probe database, Redis and the bot."""
    checks = {}

    try:
        checks["database"] = "ok" if await check_db_health() else "failed"
    except Exception as e:
        checks["database"] = "error"
        logger.error(f"Health check: Database error - {e}")

    try:
        checks["redis"] = "ok" if await check_redis_health() else "degraded"
    except Exception as e:
        checks["redis"] = "degraded"
        logger.warning(f"Health check: Redis error - {e}")

    bot = getattr(request.app.state, "bot_application", None)
    if bot is None:
        checks["telegram"] = "disabled"
    else:
        checks["telegram"] = "ok" if bot.running else "stopped"

    return checks


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the application is running. Does not check dependencies.",
)
async def health() -> HealthResponse:
    """
    Basic health check.

    Always returns 200 if the application is running.
    Use /health/ready for dependency checks.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks database (required) and Redis (optional). Returns 503 if the database is unavailable.",
    responses={
        200: {"description": "Ready to take bookings"},
        503: {"description": "Database unavailable"},
    },
)
async def ready(request: Request) -> ReadyResponse:
    """
    Readiness probe for load balancers and Kubernetes.

    Returns 503 only when the database check fails.
    """
    checks = await _dependency_checks(request)
    db_ok = checks.get("database") == "ok"

    if not db_ok:
        logger.warning("Readiness check: Database unhealthy")

    response = ReadyResponse(
        status="ready" if db_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Returns 200 if the process is alive. Used for container restart decisions.",
)
async def live() -> LiveResponse:
    """Liveness probe. Always returns 200 if the process is running."""
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )


@router.get(
    "/detailed",
    response_model=DetailedHealthResponse,
    summary="Detailed health check",
    description="Returns detailed system health. Only available in development.",
    include_in_schema=settings.is_development,
)
async def detailed(request: Request) -> DetailedHealthResponse:
    """
    Detailed health check with system info.

    Only available in development mode for debugging.
    """
    if not settings.is_development:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )

    checks = await _dependency_checks(request)

    # Safe config info (no secrets)
    config = {
        "app_name": settings.app_name,
        "environment": settings.app_env,
        "debug": str(settings.debug),
        "bot_mode": settings.bot_mode,
        "booking_cutoff_min": str(settings.booking_cutoff_min),
        "business_timezone": settings.business_timezone,
        "admin_channels": str(len(settings.admin_chat_ids_list)),
    }

    healthy = checks.get("database") == "ok" and checks.get("redis") == "ok"

    return DetailedHealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.app_env,
        uptime_seconds=get_uptime_seconds(),
        checks=checks,
        config=config,
    )
