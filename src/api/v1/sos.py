"""SOS alert API endpoints.

Students raise and cancel SOS alerts; responders watch the active list
(polled every few seconds by the dashboard) and move alerts through
``RESPONDING`` to ``RESOLVED``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import AliasChoices, BaseModel, Field

from src.api.deps import get_intake, get_sos_service
from src.middleware.actor import get_actor, require_reviewer
from src.models.actor import ActorContext
from src.models.incident import SosAlert
from src.services.intake import IncidentIntake
from src.services.sos import SosService

router = APIRouter(prefix="/safety/sos", tags=["sos"])


class SosTransitionRequest(BaseModel):
    status: str = Field(..., validation_alias=AliasChoices("status", "target_status", "targetStatus"))
    note: str | None = Field(default=None, max_length=2000)


@router.post("", response_model=SosAlert, status_code=201)
async def create_sos(
    payload: dict[str, Any] | None = Body(default=None),
    actor: ActorContext = Depends(get_actor),
    intake: IncidentIntake = Depends(get_intake),
) -> SosAlert:
    """Raise an SOS alert for the calling student.

    Coordinates are optional: ``{"latitude": .., "longitude": ..}``.
    """
    return await intake.create_sos(actor, payload)


@router.get("/active", response_model=list[SosAlert])
async def list_active_sos(
    actor: ActorContext = Depends(require_reviewer),
    sos: SosService = Depends(get_sos_service),
) -> list[SosAlert]:
    """Open alerts (``ACTIVE`` and ``RESPONDING``), newest first."""
    return await sos.list_active()


@router.get("", response_model=list[SosAlert])
async def list_sos(
    actor: ActorContext = Depends(require_reviewer),
    sos: SosService = Depends(get_sos_service),
) -> list[SosAlert]:
    return await sos.list_all()


@router.get("/mine", response_model=list[SosAlert])
async def list_my_sos(
    actor: ActorContext = Depends(get_actor),
    sos: SosService = Depends(get_sos_service),
) -> list[SosAlert]:
    return await sos.list_for_reporter(actor)


@router.get("/{sos_id}", response_model=SosAlert)
async def get_sos(
    sos_id: str,
    actor: ActorContext = Depends(get_actor),
    sos: SosService = Depends(get_sos_service),
) -> SosAlert:
    return await sos.get(sos_id, actor)


@router.post("/{sos_id}/transition", response_model=SosAlert)
async def transition_sos(
    sos_id: str,
    body: SosTransitionRequest,
    actor: ActorContext = Depends(require_reviewer),
    sos: SosService = Depends(get_sos_service),
) -> SosAlert:
    """Respond to, resolve or cancel an alert as the calling responder."""
    return await sos.transition(sos_id, body.status, actor, note=body.note)


@router.post("/{sos_id}/cancel", response_model=SosAlert)
async def cancel_sos(
    sos_id: str,
    actor: ActorContext = Depends(get_actor),
    sos: SosService = Depends(get_sos_service),
) -> SosAlert:
    """Withdraw the caller's own open alert."""
    return await sos.cancel(sos_id, actor)
