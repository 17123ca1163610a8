"""Counseling request handling.

``Pending -> Scheduled -> Completed`` or ``Pending -> Referred``. A
request can only be scheduled once a counselor is attached to it.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from src.models.actor import ActorContext
from src.models.enums import CounselingStatus
from src.models.incident import CounselingRequest, utcnow
from src.services.errors import AccessDeniedError, ValidationError
from src.services.lifecycle import COUNSELING_TRANSITIONS, ensure_transition, parse_state
from src.services.repository import COUNSELING, IncidentRepository

logger = structlog.get_logger(__name__)

_RESOURCE = "Counseling request"


class CounselingService:
    __slots__ = ("_clock", "_repo")

    def __init__(
        self,
        repository: IncidentRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._clock = clock

    async def update(
        self,
        request_id: str,
        status: CounselingStatus | str,
        actor: ActorContext,
        counselor_ref: str | None = None,
    ) -> CounselingRequest:
        """Move a request to *status*, optionally attaching a counselor.

        Raises
        ------
        ValidationError
            ``Scheduled`` was requested but no counselor is given or
            already assigned.
        InvalidTransitionError
            The move is not allowed from the current status.
        """
        if not actor.is_reviewer:
            raise AccessDeniedError("Only reviewers can update counseling requests", resource=_RESOURCE)
        counselor_ref = counselor_ref.strip() if counselor_ref else None
        previous: dict[str, CounselingStatus] = {}

        def mutate(request: CounselingRequest) -> CounselingRequest:
            target = parse_state(CounselingStatus, status, resource=_RESOURCE, current=request.status)
            ensure_transition(COUNSELING_TRANSITIONS, request.status, target, resource=_RESOURCE)
            counselor = counselor_ref or request.assigned_counselor_ref
            if target == CounselingStatus.SCHEDULED and not counselor:
                raise ValidationError(
                    "A counselor must be assigned before scheduling",
                    field="counselor_ref",
                )
            previous["status"] = request.status
            update: dict[str, Any] = {
                "status": target,
                "assigned_counselor_ref": counselor,
                "updated_at": self._clock(),
                "updated_by": actor.actor_ref,
            }
            return request.model_copy(update=update)

        request = await self._repo.update(COUNSELING, request_id, CounselingRequest, mutate)
        logger.info(
            "counseling.updated",
            request_id=request_id,
            from_status=previous["status"].value,
            to_status=request.status.value,
            counselor_ref=request.assigned_counselor_ref,
        )
        return request

    async def get(self, request_id: str, actor: ActorContext) -> CounselingRequest:
        request = await self._repo.get(COUNSELING, request_id, CounselingRequest)
        if not actor.is_reviewer and request.reporter_ref != actor.actor_ref:
            raise AccessDeniedError(resource=_RESOURCE)
        return request

    async def list_all(self, *, status: CounselingStatus | str | None = None) -> list[CounselingRequest]:
        requests = await self._repo.all(COUNSELING, CounselingRequest)
        if status is not None:
            wanted = str(status).strip().casefold()
            requests = [r for r in requests if r.status.value.casefold() == wanted]
        return sorted(requests, key=lambda r: (r.created_at, r.id), reverse=True)

    async def list_for_reporter(self, actor: ActorContext) -> list[CounselingRequest]:
        requests = await self._repo.all(COUNSELING, CounselingRequest)
        mine = [r for r in requests if r.reporter_ref == actor.actor_ref]
        return sorted(mine, key=lambda r: (r.created_at, r.id), reverse=True)
