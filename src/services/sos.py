"""SOS alert lifecycle operations.

An SOS alert starts ``ACTIVE`` at intake. Responders (reviewers) move it
to ``RESPONDING`` and finally ``RESOLVED``; either a responder or the
reporting student can ``CANCEL`` it while it is still open. Status only
moves forward and alerts are never deleted, so the full history stays
available to the reviewing side.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from src.models.actor import ActorContext
from src.models.enums import SosStatus
from src.models.incident import SosAlert, utcnow
from src.services.errors import AccessDeniedError
from src.services.lifecycle import SOS_TRANSITIONS, ensure_transition, parse_state
from src.services.repository import SOS, IncidentRepository

logger = structlog.get_logger(__name__)

_RESOURCE = "SOS alert"

# Timestamp field stamped when an alert enters each state.
_STAMP_FIELDS: dict[SosStatus, str] = {
    SosStatus.RESPONDING: "responded_at",
    SosStatus.RESOLVED: "resolved_at",
    SosStatus.CANCELLED: "cancelled_at",
}


def _newest_first(alerts: list[SosAlert]) -> list[SosAlert]:
    return sorted(alerts, key=lambda a: (a.created_at, a.id), reverse=True)


class SosService:
    """Responder-side operations on SOS alerts.

    Parameters
    ----------
    repository:
        Backing :class:`IncidentRepository`.
    clock:
        Source of transition timestamps.
    """

    __slots__ = ("_clock", "_repo")

    def __init__(
        self,
        repository: IncidentRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._clock = clock

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        sos_id: str,
        target_status: SosStatus | str,
        actor: ActorContext,
        note: str | None = None,
    ) -> SosAlert:
        """Move an alert along the SOS table on behalf of a responder.

        Parameters
        ----------
        sos_id:
            Alert identifier.
        target_status:
            Requested state, e.g. ``"RESPONDING"``.
        actor:
            The responding reviewer; recorded as ``responder_ref``.
        note:
            Optional free-text note kept on the alert.

        Raises
        ------
        AccessDeniedError
            The actor is not a reviewer.
        InvalidTransitionError
            The move is not in the table; the stored alert is unchanged.
        NotFoundError
            No alert with *sos_id*.
        """
        if not actor.is_reviewer:
            raise AccessDeniedError("Only responders can change an SOS alert", resource=_RESOURCE)

        note = note.strip() if note else None
        previous: dict[str, SosStatus] = {}

        def mutate(alert: SosAlert) -> SosAlert:
            target = parse_state(SosStatus, target_status, resource=_RESOURCE, current=alert.status)
            ensure_transition(SOS_TRANSITIONS, alert.status, target, resource=_RESOURCE)
            previous["status"] = alert.status
            now = self._clock()
            update: dict[str, Any] = {
                "status": target,
                "responder_ref": actor.actor_ref,
                "updated_at": now,
                _STAMP_FIELDS[target]: now,
            }
            if note:
                update["response_note"] = note
            return alert.model_copy(update=update)

        alert = await self._repo.update(SOS, sos_id, SosAlert, mutate)
        logger.info(
            "sos.transitioned",
            sos_id=sos_id,
            from_status=previous["status"].value,
            to_status=alert.status.value,
            responder_ref=actor.actor_ref,
        )
        return alert

    async def cancel(self, sos_id: str, actor: ActorContext) -> SosAlert:
        """Let the reporting student withdraw their own open alert."""

        def mutate(alert: SosAlert) -> SosAlert:
            if alert.reporter_ref != actor.actor_ref:
                raise AccessDeniedError("Only the reporter can cancel this SOS alert", resource=_RESOURCE)
            ensure_transition(SOS_TRANSITIONS, alert.status, SosStatus.CANCELLED, resource=_RESOURCE)
            now = self._clock()
            return alert.model_copy(
                update={"status": SosStatus.CANCELLED, "cancelled_at": now, "updated_at": now},
            )

        alert = await self._repo.update(SOS, sos_id, SosAlert, mutate)
        logger.info("sos.cancelled_by_reporter", sos_id=sos_id)
        return alert

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, sos_id: str, actor: ActorContext) -> SosAlert:
        alert = await self._repo.get(SOS, sos_id, SosAlert)
        if not actor.is_reviewer and alert.reporter_ref != actor.actor_ref:
            raise AccessDeniedError(resource=_RESOURCE)
        return alert

    async def list_active(self) -> list[SosAlert]:
        """Open alerts (``ACTIVE`` and ``RESPONDING``), newest first."""
        alerts = await self._repo.all(SOS, SosAlert)
        return _newest_first([a for a in alerts if a.is_open])

    async def list_all(self) -> list[SosAlert]:
        return _newest_first(await self._repo.all(SOS, SosAlert))

    async def list_for_reporter(self, actor: ActorContext) -> list[SosAlert]:
        """The acting reporter's own SOS history."""
        alerts = await self._repo.all(SOS, SosAlert)
        return _newest_first([a for a in alerts if a.reporter_ref == actor.actor_ref])
