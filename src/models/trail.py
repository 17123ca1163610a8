"""Investigation trail entries attached to a complaint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.models.enums import ActorRole


class InvestigationLogEntry(BaseModel):
    """Confidential reviewer case note. Written once, never edited."""

    model_config = {"frozen": True}

    complaint_id: str
    seq: int = Field(..., ge=1)
    author_ref: str
    content: str
    timestamp: datetime


class Message(BaseModel):
    """One message in the reporter/reviewer thread of a complaint.

    ``sender_ref`` is absent for reporter messages on anonymous complaints.
    """

    model_config = {"frozen": True}

    complaint_id: str
    seq: int = Field(..., ge=1)
    sender_role: ActorRole
    sender_ref: str | None = None
    content: str
    timestamp: datetime
