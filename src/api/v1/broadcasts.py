"""Broadcast alert API endpoints.

Reviewers publish and retire institution-wide notices; every account can
read the active notices addressed to it and acknowledge them.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from src.api.deps import get_broadcast_service
from src.middleware.actor import get_actor, require_reviewer
from src.models.actor import ActorContext
from src.models.broadcast import BroadcastAlert
from src.services.broadcast import BroadcastService

router = APIRouter(prefix="/safety/broadcasts", tags=["broadcasts"])


class DeactivateRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


@router.post("", response_model=BroadcastAlert, status_code=201)
async def broadcast_alert(
    payload: dict[str, Any] = Body(...),
    actor: ActorContext = Depends(require_reviewer),
    broadcasts: BroadcastService = Depends(get_broadcast_service),
) -> BroadcastAlert:
    """Publish a new active alert to its target audience."""
    return await broadcasts.broadcast(payload, actor)


@router.get("", response_model=list[BroadcastAlert])
async def list_broadcasts(
    actor: ActorContext = Depends(require_reviewer),
    broadcasts: BroadcastService = Depends(get_broadcast_service),
) -> list[BroadcastAlert]:
    return await broadcasts.list_all()


@router.get("/visible", response_model=list[BroadcastAlert])
async def list_visible_broadcasts(
    actor: ActorContext = Depends(get_actor),
    broadcasts: BroadcastService = Depends(get_broadcast_service),
) -> list[BroadcastAlert]:
    """Active alerts addressed to the caller."""
    return await broadcasts.list_visible(actor)


@router.post("/{broadcast_id}/deactivate", response_model=BroadcastAlert)
async def deactivate_broadcast(
    broadcast_id: str,
    body: DeactivateRequest | None = None,
    actor: ActorContext = Depends(require_reviewer),
    broadcasts: BroadcastService = Depends(get_broadcast_service),
) -> BroadcastAlert:
    """Retire an alert. There is no reactivation."""
    reason = body.reason if body is not None else None
    return await broadcasts.deactivate(broadcast_id, actor, reason=reason)


@router.post("/{broadcast_id}/acknowledge", response_model=BroadcastAlert)
async def acknowledge_broadcast(
    broadcast_id: str,
    actor: ActorContext = Depends(get_actor),
    broadcasts: BroadcastService = Depends(get_broadcast_service),
) -> BroadcastAlert:
    return await broadcasts.acknowledge(broadcast_id, actor)
