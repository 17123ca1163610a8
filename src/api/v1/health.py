"""Health check endpoints for SafetyHub API v1.

Provides liveness and readiness probes for container deployments. The
readiness check verifies the record store is reachable.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual dependency statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns 200 if the application process is running and able to
    handle requests. Does *not* check downstream dependencies.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse | ORJSONResponse:
    """Readiness probe.

    Pings the record store so the load balancer only routes traffic to
    instances that can persist incidents. Answers 503 when degraded.
    """
    checks: dict[str, str] = {}
    all_ok = True

    # -- Record store ----------------------------------------------------------
    store = getattr(request.app.state, "store", None)
    if store is not None:
        try:
            if await store.ping():
                checks["store"] = f"ok ({type(store).__name__})"
            else:
                checks["store"] = "unreachable"
                all_ok = False
        except Exception as exc:
            checks["store"] = f"error: {exc!s}"
            all_ok = False
    else:
        checks["store"] = "not_configured"
        all_ok = False

    # -- Services ----------------------------------------------------------------
    for name in ("intake", "sos", "complaints", "trail", "counseling", "broadcasts", "analytics"):
        checks[name] = "ok" if getattr(request.app.state, name, None) is not None else "not_initialised"
        all_ok = all_ok and checks[name] == "ok"

    status = "ready" if all_ok else "degraded"
    logger.info("health.readiness_check", status=status, checks=checks)

    result = ReadinessResponse(status=status, checks=checks)
    if not all_ok:
        return ORJSONResponse(status_code=503, content=result.model_dump())
    return result
