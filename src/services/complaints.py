"""Complaint triage: status transitions, assignment and scoped reads.

Complaints move ``Submitted -> Under Review / Action Taken -> Closed``
according to :data:`src.services.lifecycle.COMPLAINT_TRANSITIONS`.
Assignment is orthogonal to status: it names the reviewer responsible for
the case and never changes the state.

Anonymity is enforced here, at the data-access boundary: every record
handed to the reviewing side goes through :meth:`Complaint.reviewer_view`.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from src.models.actor import ActorContext
from src.models.enums import ComplaintCategory, ComplaintStatus, Severity, coerce_enum
from src.models.incident import Complaint, utcnow
from src.services.errors import AccessDeniedError, InvalidTransitionError, ValidationError
from src.services.lifecycle import (
    COMPLAINT_TRANSITIONS,
    ensure_transition,
    is_terminal,
    parse_state,
)
from src.services.repository import COMPLAINTS, IncidentRepository

logger = structlog.get_logger(__name__)

_RESOURCE = "Complaint"


def can_view_thread(complaint: Complaint, actor: ActorContext) -> bool:
    """Whether *actor* is a party to the complaint's message thread.

    The reporter always is. On the reviewing side the assignee is, or any
    reviewer while the complaint is still unassigned (triage).
    """
    if complaint.is_reported_by(actor.actor_ref):
        return True
    if not actor.is_reviewer:
        return False
    return complaint.assigned_to_ref is None or complaint.assigned_to_ref == actor.actor_ref


def _newest_first(complaints: list[Complaint]) -> list[Complaint]:
    return sorted(complaints, key=lambda c: (c.submitted_at, c.id), reverse=True)


class ComplaintService:
    """Reviewer-side complaint operations plus the reporter's own reads."""

    __slots__ = ("_clock", "_repo")

    def __init__(
        self,
        repository: IncidentRepository,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._clock = clock

    # -- transitions ---------------------------------------------------------

    async def transition(
        self,
        complaint_id: str,
        target_status: ComplaintStatus | str,
        actor: ActorContext,
    ) -> Complaint:
        """Change a complaint's status.

        Only reviewers may do this, and once the complaint is assigned
        only the assignee. Returns the reviewer view of the result.
        """
        if not actor.is_reviewer:
            raise AccessDeniedError("Only reviewers can change complaint status", resource=_RESOURCE)

        previous: dict[str, ComplaintStatus] = {}

        def mutate(complaint: Complaint) -> Complaint:
            if complaint.assigned_to_ref is not None and complaint.assigned_to_ref != actor.actor_ref:
                raise AccessDeniedError(
                    "Complaint is assigned to another reviewer",
                    resource=_RESOURCE,
                )
            target = parse_state(ComplaintStatus, target_status, resource=_RESOURCE, current=complaint.status)
            ensure_transition(COMPLAINT_TRANSITIONS, complaint.status, target, resource=_RESOURCE)
            previous["status"] = complaint.status
            now = self._clock()
            update: dict[str, Any] = {
                "status": target,
                "updated_at": now,
                "updated_by": actor.actor_ref,
            }
            if target == ComplaintStatus.CLOSED:
                update["closed_at"] = now
            return complaint.model_copy(update=update)

        complaint = await self._repo.update(COMPLAINTS, complaint_id, Complaint, mutate)
        logger.info(
            "complaint.transitioned",
            complaint_id=complaint_id,
            from_status=previous["status"].value,
            to_status=complaint.status.value,
            actor_ref=actor.actor_ref,
        )
        return complaint.reviewer_view()

    async def assign(self, complaint_id: str, assignee_ref: str, actor: ActorContext) -> Complaint:
        """Assign the complaint to a reviewer. Status is left as it is.

        Raises
        ------
        InvalidTransitionError
            The complaint is already ``Closed``.
        """
        if not actor.is_reviewer:
            raise AccessDeniedError("Only reviewers can assign complaints", resource=_RESOURCE)
        assignee_ref = (assignee_ref or "").strip()
        if not assignee_ref:
            raise ValidationError("Assignee is required", field="assignee_ref")

        def mutate(complaint: Complaint) -> Complaint:
            if is_terminal(COMPLAINT_TRANSITIONS, complaint.status):
                raise InvalidTransitionError(
                    resource=_RESOURCE,
                    current=complaint.status.value,
                    requested=complaint.status.value,
                    allowed=[],
                    message=f"Cannot assign a complaint in terminal state '{complaint.status.value}'",
                )
            now = self._clock()
            return complaint.model_copy(
                update={
                    "assigned_to_ref": assignee_ref,
                    "assigned_by_ref": actor.actor_ref,
                    "updated_at": now,
                    "updated_by": actor.actor_ref,
                },
            )

        complaint = await self._repo.update(COMPLAINTS, complaint_id, Complaint, mutate)
        logger.info(
            "complaint.assigned",
            complaint_id=complaint_id,
            assignee_ref=assignee_ref,
            assigned_by=actor.actor_ref,
        )
        return complaint.reviewer_view()

    # -- reads ---------------------------------------------------------------

    async def load(self, complaint_id: str) -> Complaint:
        """Stored record including the reporter. Internal use only."""
        return await self._repo.get(COMPLAINTS, complaint_id, Complaint)

    async def get(self, complaint_id: str, actor: ActorContext) -> Complaint:
        """One complaint as *actor* may see it.

        Reviewers get the anonymised view; a reporter only their own.
        """
        complaint = await self.load(complaint_id)
        if actor.is_reviewer:
            return complaint.reviewer_view()
        if complaint.is_reported_by(actor.actor_ref):
            return complaint
        raise AccessDeniedError(resource=_RESOURCE)

    async def list_all(
        self,
        *,
        status: ComplaintStatus | str | None = None,
        category: ComplaintCategory | str | None = None,
        severity: Severity | str | None = None,
    ) -> list[Complaint]:
        """Reviewer listing, newest first, optionally filtered."""
        complaints = await self._repo.all(COMPLAINTS, Complaint)
        if status is not None:
            status = coerce_enum(ComplaintStatus, status)
            complaints = [c for c in complaints if c.status == status]
        if category is not None:
            category = coerce_enum(ComplaintCategory, category)
            complaints = [c for c in complaints if c.category == category]
        if severity is not None:
            severity = coerce_enum(Severity, severity)
            complaints = [c for c in complaints if c.severity == severity]
        return [c.reviewer_view() for c in _newest_first(complaints)]

    async def list_for_reporter(self, actor: ActorContext) -> list[Complaint]:
        complaints = await self._repo.all(COMPLAINTS, Complaint)
        return _newest_first([c for c in complaints if c.is_reported_by(actor.actor_ref)])
