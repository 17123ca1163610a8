"""Incident records: SOS alerts, complaints and counseling requests.

Each record carries a closed status enum whose legal moves live in
:mod:`src.services.lifecycle`. Records are replaced wholesale on every
change (``model_copy``) and written back with compare-and-set, so an
instance held by a caller is a snapshot, never a live view.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.enums import (
    ComplaintCategory,
    ComplaintStatus,
    CounselingKind,
    CounselingStatus,
    CounselingUrgency,
    Severity,
    SosStatus,
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_record_id(prefix: str) -> str:
    """``SOS-1F3A...``-style identifier, unique per record."""
    return f"{prefix}-{uuid4().hex[:16].upper()}"


class Coordinates(BaseModel):
    """WGS84 position reported by the reporter's device."""

    model_config = {"frozen": True}

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


# ---------------------------------------------------------------------------
# SOS
# ---------------------------------------------------------------------------


class SosAlert(BaseModel):
    """A single-tap emergency signal awaiting reviewer response."""

    id: str = Field(default_factory=lambda: new_record_id("SOS"))
    reporter_ref: str
    reporter_name: str | None = None
    coordinates: Coordinates | None = None
    created_at: datetime = Field(default_factory=utcnow)
    status: SosStatus = SosStatus.ACTIVE
    responder_ref: str | None = None
    response_note: str | None = None
    responded_at: datetime | None = None
    resolved_at: datetime | None = None
    cancelled_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        return self.status in (SosStatus.ACTIVE, SosStatus.RESPONDING)


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------


class Complaint(BaseModel):
    """A formal, categorised incident report.

    ``reporter_ref`` is always stored so the reporter can list their own
    complaints, but :meth:`reviewer_view` is the only shape reviewer-facing
    reads ever return.
    """

    id: str = Field(default_factory=lambda: new_record_id("CMP"))
    reporter_ref: str | None
    anonymous: bool = False
    category: ComplaintCategory
    severity: Severity
    description: str
    location: str | None = None
    department: str | None = None
    submitted_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: str | None = None
    status: ComplaintStatus = ComplaintStatus.SUBMITTED
    assigned_to_ref: str | None = None
    assigned_by_ref: str | None = None
    closed_at: datetime | None = None

    def reviewer_view(self) -> Complaint:
        """Copy safe to hand to the reviewing side."""
        if self.anonymous:
            return self.model_copy(update={"reporter_ref": None})
        return self.model_copy()

    def is_reported_by(self, actor_ref: str) -> bool:
        return self.reporter_ref is not None and self.reporter_ref == actor_ref


# ---------------------------------------------------------------------------
# Counseling
# ---------------------------------------------------------------------------


class CounselingRequest(BaseModel):
    """A medical or psychological counseling request."""

    id: str = Field(default_factory=lambda: new_record_id("CNS"))
    reporter_ref: str
    kind: CounselingKind
    urgency: CounselingUrgency = CounselingUrgency.ROUTINE
    reason: str
    preferred_time: datetime | None = None
    status: CounselingStatus = CounselingStatus.PENDING
    assigned_counselor_ref: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: str | None = None
