"""FastAPI dependencies resolving services wired onto ``app.state``."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from src.services.analytics import AnalyticsService
from src.services.broadcast import BroadcastService
from src.services.complaints import ComplaintService
from src.services.counseling import CounselingService
from src.services.intake import IncidentIntake
from src.services.investigation import InvestigationTrail
from src.services.sos import SosService


def _from_state(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} service not available")
    return service


def get_intake(request: Request) -> IncidentIntake:
    return _from_state(request, "intake")


def get_sos_service(request: Request) -> SosService:
    return _from_state(request, "sos")


def get_complaint_service(request: Request) -> ComplaintService:
    return _from_state(request, "complaints")


def get_trail(request: Request) -> InvestigationTrail:
    return _from_state(request, "trail")


def get_counseling_service(request: Request) -> CounselingService:
    return _from_state(request, "counseling")


def get_broadcast_service(request: Request) -> BroadcastService:
    return _from_state(request, "broadcasts")


def get_analytics_service(request: Request) -> AnalyticsService:
    return _from_state(request, "analytics")
