"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Health: liveness and readiness probes
    * SOS: raise, monitor, respond to and cancel SOS alerts
    * Complaints: filing, triage, assignment, case notes and messages
    * Counseling: medical / psychological counseling requests
    * Broadcasts: targeted institution-wide alerts
    * Analytics: safety statistics and the reviewer dashboard
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import analytics, broadcasts, complaints, counseling, health, sos

api_router = APIRouter(prefix="/api/v1")

# -- Operational -----------------------------------------------------------
api_router.include_router(health.router)

# -- Incident lifecycle ----------------------------------------------------
api_router.include_router(sos.router)
api_router.include_router(complaints.router)
api_router.include_router(counseling.router)

# -- Dissemination and reporting -------------------------------------------
api_router.include_router(broadcasts.router)
api_router.include_router(analytics.router)
