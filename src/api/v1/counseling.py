"""Counseling request API endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from pydantic import AliasChoices, BaseModel, Field

from src.api.deps import get_counseling_service, get_intake
from src.middleware.actor import get_actor, require_reviewer
from src.models.actor import ActorContext
from src.models.incident import CounselingRequest
from src.services.counseling import CounselingService
from src.services.intake import IncidentIntake

router = APIRouter(prefix="/safety/counseling", tags=["counseling"])


class CounselingUpdateRequest(BaseModel):
    status: str
    counselor_ref: str | None = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("counselor_ref", "counselorRef", "assignedCounselor"),
    )


@router.post("", response_model=CounselingRequest, status_code=201)
async def submit_counseling(
    payload: dict[str, Any] = Body(...),
    actor: ActorContext = Depends(get_actor),
    intake: IncidentIntake = Depends(get_intake),
) -> CounselingRequest:
    """Request a medical or psychological counseling session."""
    return await intake.submit_counseling(actor, payload)


@router.get("", response_model=list[CounselingRequest])
async def list_counseling(
    status: str | None = Query(default=None),
    actor: ActorContext = Depends(require_reviewer),
    counseling: CounselingService = Depends(get_counseling_service),
) -> list[CounselingRequest]:
    return await counseling.list_all(status=status)


@router.get("/mine", response_model=list[CounselingRequest])
async def list_my_counseling(
    actor: ActorContext = Depends(get_actor),
    counseling: CounselingService = Depends(get_counseling_service),
) -> list[CounselingRequest]:
    return await counseling.list_for_reporter(actor)


@router.get("/{request_id}", response_model=CounselingRequest)
async def get_counseling(
    request_id: str,
    actor: ActorContext = Depends(get_actor),
    counseling: CounselingService = Depends(get_counseling_service),
) -> CounselingRequest:
    return await counseling.get(request_id, actor)


@router.post("/{request_id}/update", response_model=CounselingRequest)
async def update_counseling(
    request_id: str,
    body: CounselingUpdateRequest,
    actor: ActorContext = Depends(require_reviewer),
    counseling: CounselingService = Depends(get_counseling_service),
) -> CounselingRequest:
    """Schedule, refer or complete a request. Scheduling needs a counselor."""
    return await counseling.update(request_id, body.status, actor, counselor_ref=body.counselor_ref)
