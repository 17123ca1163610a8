"""Complaint API endpoints, including the investigation trail.

Students file complaints (optionally anonymously) and follow their own;
reviewers triage, assign and move them through the lifecycle, keep
confidential case notes, and talk to the reporter through the message
thread. Reviewer-facing responses never carry the reporter of an
anonymous complaint.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from pydantic import AliasChoices, BaseModel, Field

from src.api.deps import get_complaint_service, get_intake, get_trail
from src.middleware.actor import get_actor, require_reviewer
from src.models.actor import ActorContext
from src.models.incident import Complaint
from src.models.trail import InvestigationLogEntry, Message
from src.services.complaints import ComplaintService
from src.services.intake import IncidentIntake
from src.services.investigation import InvestigationTrail

router = APIRouter(prefix="/safety/complaints", tags=["complaints"])


class ComplaintTransitionRequest(BaseModel):
    status: str = Field(..., validation_alias=AliasChoices("status", "target_status", "targetStatus"))


class AssignRequest(BaseModel):
    assignee_ref: str = Field(
        ...,
        min_length=1,
        max_length=200,
        validation_alias=AliasChoices("assignee_ref", "assigneeRef", "assignedTo"),
    )


class TrailEntryRequest(BaseModel):
    content: str = Field(..., max_length=5000)


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------


@router.post("", response_model=Complaint, status_code=201)
async def submit_complaint(
    payload: dict[str, Any] = Body(...),
    actor: ActorContext = Depends(get_actor),
    intake: IncidentIntake = Depends(get_intake),
) -> Complaint:
    """File a complaint. ``anonymous: true`` hides the reporter from reviewers."""
    return await intake.submit_complaint(actor, payload)


@router.get("", response_model=list[Complaint])
async def list_complaints(
    status: str | None = Query(default=None),
    category: str | None = Query(default=None),
    severity: str | None = Query(default=None),
    actor: ActorContext = Depends(require_reviewer),
    complaints: ComplaintService = Depends(get_complaint_service),
) -> list[Complaint]:
    return await complaints.list_all(status=status, category=category, severity=severity)


@router.get("/mine", response_model=list[Complaint])
async def list_my_complaints(
    actor: ActorContext = Depends(get_actor),
    complaints: ComplaintService = Depends(get_complaint_service),
) -> list[Complaint]:
    return await complaints.list_for_reporter(actor)


@router.get("/{complaint_id}", response_model=Complaint)
async def get_complaint(
    complaint_id: str,
    actor: ActorContext = Depends(get_actor),
    complaints: ComplaintService = Depends(get_complaint_service),
) -> Complaint:
    return await complaints.get(complaint_id, actor)


@router.post("/{complaint_id}/transition", response_model=Complaint)
async def transition_complaint(
    complaint_id: str,
    body: ComplaintTransitionRequest,
    actor: ActorContext = Depends(require_reviewer),
    complaints: ComplaintService = Depends(get_complaint_service),
) -> Complaint:
    return await complaints.transition(complaint_id, body.status, actor)


@router.post("/{complaint_id}/assign", response_model=Complaint)
async def assign_complaint(
    complaint_id: str,
    body: AssignRequest,
    actor: ActorContext = Depends(require_reviewer),
    complaints: ComplaintService = Depends(get_complaint_service),
) -> Complaint:
    """Assign to a reviewer. Does not change the complaint status."""
    return await complaints.assign(complaint_id, body.assignee_ref, actor)


# ---------------------------------------------------------------------------
# Investigation trail
# ---------------------------------------------------------------------------


@router.get("/{complaint_id}/logs", response_model=list[InvestigationLogEntry])
async def list_logs(
    complaint_id: str,
    after_seq: int = Query(default=0, ge=0),
    actor: ActorContext = Depends(get_actor),
    trail: InvestigationTrail = Depends(get_trail),
) -> list[InvestigationLogEntry]:
    return await trail.list_logs(complaint_id, actor, after_seq=after_seq)


@router.post("/{complaint_id}/logs", response_model=InvestigationLogEntry, status_code=201)
async def append_log(
    complaint_id: str,
    body: TrailEntryRequest,
    actor: ActorContext = Depends(get_actor),
    trail: InvestigationTrail = Depends(get_trail),
) -> InvestigationLogEntry:
    return await trail.append_log(complaint_id, actor, body.content)


@router.get("/{complaint_id}/messages", response_model=list[Message])
async def list_messages(
    complaint_id: str,
    after_seq: int = Query(default=0, ge=0),
    actor: ActorContext = Depends(get_actor),
    trail: InvestigationTrail = Depends(get_trail),
) -> list[Message]:
    """Messages in append order; ``after_seq`` returns only newer ones."""
    return await trail.list_messages(complaint_id, actor, after_seq=after_seq)


@router.post("/{complaint_id}/messages", response_model=Message, status_code=201)
async def send_message(
    complaint_id: str,
    body: TrailEntryRequest,
    actor: ActorContext = Depends(get_actor),
    trail: InvestigationTrail = Depends(get_trail),
) -> Message:
    return await trail.send_message(complaint_id, actor, body.content)
