"""Incident intake: turns raw submissions into stored records.

Every new SOS alert, complaint and counseling request enters through
:class:`IncidentIntake`. Intake validates the payload, sets the initial
lifecycle state, stamps identifiers and timestamps, and persists the
record. The reporter is always the acting account; a reporter reference
inside the payload is ignored.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from src.models.actor import ActorContext
from src.models.enums import IncidentKind, coerce_enum
from src.models.incident import Complaint, CounselingRequest, SosAlert, utcnow
from src.models.request import ComplaintSubmission, CounselingSubmission, SosSubmission
from src.services.errors import ValidationError
from src.services.notifications import NotificationChannel, dispatch, sos_raised
from src.services.repository import COMPLAINTS, COUNSELING, SOS, IncidentRepository

logger = structlog.get_logger(__name__)

P = TypeVar("P", bound=BaseModel)

Record = SosAlert | Complaint | CounselingRequest


def parse_payload(model: type[P], payload: Mapping[str, Any] | BaseModel | None, *, what: str) -> P:
    """Validate *payload* as *model*, raising our :class:`ValidationError`."""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=False)
    try:
        return model.model_validate(payload or {})
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, f"Invalid {what} submission") from exc


class IncidentIntake:
    """Creates incident records in their initial state.

    Parameters
    ----------
    repository:
        Where new records are persisted.
    notifier:
        Channel told about every new SOS alert. ``None`` disables fan-out.
    clock:
        Source of "now"; injectable for deterministic tests.
    """

    __slots__ = ("_clock", "_notifier", "_repo")

    def __init__(
        self,
        repository: IncidentRepository,
        notifier: NotificationChannel | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._notifier = notifier
        self._clock = clock

    async def submit(
        self,
        kind: IncidentKind | str,
        payload: Mapping[str, Any] | BaseModel | None,
        actor: ActorContext,
    ) -> Record:
        """Validate and store a new incident of *kind*.

        Raises
        ------
        ValidationError
            Unknown *kind*, or a missing / malformed payload field. Nothing
            is persisted in that case.
        """
        resolved = coerce_enum(IncidentKind, kind)
        if resolved == IncidentKind.SOS:
            return await self.create_sos(actor, payload)
        if resolved == IncidentKind.COMPLAINT:
            return await self.submit_complaint(actor, payload)
        if resolved == IncidentKind.COUNSELING:
            return await self.submit_counseling(actor, payload)
        raise ValidationError(
            f"Unknown incident kind '{kind}'",
            field="kind",
            errors=[{"field": "kind", "message": "must be one of sos, complaint, counseling", "type": "enum"}],
        )

    # -- SOS -----------------------------------------------------------------

    async def create_sos(
        self,
        actor: ActorContext,
        payload: Mapping[str, Any] | SosSubmission | None = None,
    ) -> SosAlert:
        """Raise an SOS alert; coordinates are optional."""
        submission = parse_payload(SosSubmission, payload, what="SOS")
        now = self._clock()
        alert = SosAlert(
            reporter_ref=actor.actor_ref,
            reporter_name=submission.reporter_name,
            coordinates=submission.coordinates,
            created_at=now,
            updated_at=now,
        )
        await self._repo.add(SOS, alert.id, alert)

        logger.info(
            "sos.created",
            sos_id=alert.id,
            reporter_ref=alert.reporter_ref,
            has_coordinates=alert.coordinates is not None,
        )

        if self._notifier is not None:
            await dispatch(self._notifier, sos_raised(alert))
        return alert

    # -- complaints ----------------------------------------------------------

    async def submit_complaint(
        self,
        actor: ActorContext,
        payload: Mapping[str, Any] | ComplaintSubmission,
    ) -> Complaint:
        submission = parse_payload(ComplaintSubmission, payload, what="complaint")
        now = self._clock()
        complaint = Complaint(
            reporter_ref=actor.actor_ref,
            anonymous=submission.anonymous,
            category=submission.category,
            severity=submission.severity,
            description=submission.description,
            location=submission.location,
            department=submission.department,
            submitted_at=now,
            updated_at=now,
        )
        await self._repo.add(COMPLAINTS, complaint.id, complaint)

        # Reporter identity of anonymous complaints stays out of the logs.
        logger.info(
            "complaint.submitted",
            complaint_id=complaint.id,
            category=complaint.category.value,
            severity=complaint.severity.value,
            anonymous=complaint.anonymous,
        )
        return complaint

    # -- counseling ----------------------------------------------------------

    async def submit_counseling(
        self,
        actor: ActorContext,
        payload: Mapping[str, Any] | CounselingSubmission,
    ) -> CounselingRequest:
        submission = parse_payload(CounselingSubmission, payload, what="counseling")
        now = self._clock()
        request = CounselingRequest(
            reporter_ref=actor.actor_ref,
            kind=submission.kind,
            urgency=submission.urgency,
            reason=submission.reason,
            preferred_time=submission.preferred_time,
            created_at=now,
            updated_at=now,
        )
        await self._repo.add(COUNSELING, request.id, request)

        logger.info(
            "counseling.submitted",
            request_id=request.id,
            kind=request.kind.value,
            urgency=request.urgency.value,
        )
        return request
