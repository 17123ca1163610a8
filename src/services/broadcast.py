"""Broadcast dissemination.

Reviewers publish institution-wide notices to an audience (everyone, a
set of departments, hostel residents or faculty). A broadcast is created
active and can be deactivated exactly once; there is no reactivation,
publishing again means creating a new alert. Broadcasts never expire on
their own.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog

from src.models.actor import ActorContext
from src.models.broadcast import BroadcastAlert
from src.models.incident import utcnow
from src.models.request import BroadcastSubmission
from src.services.directory import Account, AudienceDirectory, matches_audience
from src.services.errors import AccessDeniedError, InvalidTransitionError
from src.services.intake import parse_payload
from src.services.notifications import NotificationChannel, broadcast_published, dispatch
from src.services.repository import BROADCASTS, IncidentRepository

logger = structlog.get_logger(__name__)

_RESOURCE = "Broadcast alert"
_ACTIVE = "active"
_INACTIVE = "inactive"


def _newest_first(alerts: list[BroadcastAlert]) -> list[BroadcastAlert]:
    return sorted(alerts, key=lambda a: (a.created_at, a.id), reverse=True)


class BroadcastService:
    """Publishes, targets and retires broadcast alerts.

    Parameters
    ----------
    repository:
        Backing store for alerts.
    directory:
        Resolves the concrete accounts behind an audience.
    notifier:
        Channel that receives each published alert with its recipients.
        ``None`` disables fan-out.
    clock:
        Source of creation and closure timestamps.
    """

    __slots__ = ("_clock", "_directory", "_notifier", "_repo")

    def __init__(
        self,
        repository: IncidentRepository,
        directory: AudienceDirectory,
        notifier: NotificationChannel | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._directory = directory
        self._notifier = notifier
        self._clock = clock

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def broadcast(
        self,
        payload: Mapping[str, Any] | BroadcastSubmission,
        actor: ActorContext,
    ) -> BroadcastAlert:
        """Validate and publish a new active broadcast.

        Raises
        ------
        ValidationError
            Missing title / description, bad severity or audience, or a
            ``departments`` audience without a department scope.
        """
        if not actor.is_reviewer:
            raise AccessDeniedError("Only reviewers can broadcast alerts", resource=_RESOURCE)
        submission = parse_payload(BroadcastSubmission, payload, what="broadcast")

        alert = BroadcastAlert(
            title=submission.title,
            description=submission.description,
            category=submission.category,
            severity=submission.severity,
            target_audience=submission.target_audience,
            department_scope=submission.department_scope,
            location=submission.location,
            created_by=actor.actor_ref,
            created_at=self._clock(),
        )
        await self._repo.add(BROADCASTS, alert.id, alert)

        recipients = await self.resolve_audience(alert)
        logger.info(
            "broadcast.published",
            broadcast_id=alert.id,
            severity=alert.severity.value,
            target_audience=alert.target_audience.value,
            department_scope=alert.department_scope,
            recipient_count=len(recipients),
        )

        if self._notifier is not None:
            await dispatch(self._notifier, broadcast_published(alert, recipients))
        return alert

    async def deactivate(
        self,
        broadcast_id: str,
        actor: ActorContext,
        reason: str | None = None,
    ) -> BroadcastAlert:
        """Retire an active broadcast. One way only.

        Raises
        ------
        InvalidTransitionError
            The alert is already inactive.
        """
        if not actor.is_reviewer:
            raise AccessDeniedError("Only reviewers can deactivate alerts", resource=_RESOURCE)
        reason = reason.strip() if reason else None

        def mutate(alert: BroadcastAlert) -> BroadcastAlert:
            if not alert.is_active:
                raise InvalidTransitionError(
                    resource=_RESOURCE,
                    current=_INACTIVE,
                    requested=_INACTIVE,
                    allowed=[],
                    message="Broadcast alert is already inactive",
                )
            return alert.model_copy(
                update={
                    "is_active": False,
                    "closed_by": actor.actor_ref,
                    "closed_at": self._clock(),
                    "closure_reason": reason,
                },
            )

        alert = await self._repo.update(BROADCASTS, broadcast_id, BroadcastAlert, mutate)
        logger.info(
            "broadcast.deactivated",
            broadcast_id=broadcast_id,
            closed_by=actor.actor_ref,
            reason=reason,
        )
        return alert

    async def acknowledge(self, broadcast_id: str, actor: ActorContext) -> BroadcastAlert:
        """Record that *actor* has seen the alert (bumps ``view_count``)."""
        alert = await self._repo.get(BROADCASTS, broadcast_id, BroadcastAlert)
        if not actor.is_reviewer and not await self.is_visible_to(alert, actor):
            raise AccessDeniedError(resource=_RESOURCE)

        def mutate(current: BroadcastAlert) -> BroadcastAlert:
            return current.model_copy(update={"view_count": current.view_count + 1})

        alert = await self._repo.update(BROADCASTS, broadcast_id, BroadcastAlert, mutate)
        logger.debug("broadcast.acknowledged", broadcast_id=broadcast_id, view_count=alert.view_count)
        return alert

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, broadcast_id: str) -> BroadcastAlert:
        return await self._repo.get(BROADCASTS, broadcast_id, BroadcastAlert)

    async def list_all(self) -> list[BroadcastAlert]:
        """Every alert, active or not, newest first."""
        return _newest_first(await self._repo.all(BROADCASTS, BroadcastAlert))

    async def list_visible(self, actor: ActorContext) -> list[BroadcastAlert]:
        """Active alerts whose audience includes *actor*."""
        account = await self._account_for(actor)
        alerts = await self._repo.all(BROADCASTS, BroadcastAlert)
        return _newest_first([a for a in alerts if a.is_active and matches_audience(a, account)])

    # ------------------------------------------------------------------
    # Audience resolution
    # ------------------------------------------------------------------

    async def resolve_audience(self, alert: BroadcastAlert) -> list[str]:
        """Account references the alert is addressed to."""
        return [a.ref for a in await self._directory.accounts() if matches_audience(alert, a)]

    async def is_visible_to(self, alert: BroadcastAlert, actor: ActorContext) -> bool:
        return matches_audience(alert, await self._account_for(actor))

    async def _account_for(self, actor: ActorContext) -> Account:
        # Accounts unknown to the directory are matched on what the gateway told us.
        account = await self._directory.lookup(actor.actor_ref)
        if account is None:
            account = Account(ref=actor.actor_ref, department=actor.department)
        return account
