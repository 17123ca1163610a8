"""Institution-wide broadcast alerts."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from src.models.enums import Severity, TargetAudience
from src.models.incident import new_record_id, utcnow

_SEVERITY_COLORS: dict[Severity, str] = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "yellow",
}


class BroadcastAlert(BaseModel):
    """A notice pushed to every account matching ``target_audience``.

    Only the active flag (with its closure metadata) and ``view_count``
    change after creation; reactivation means creating a new alert.
    """

    id: str = Field(default_factory=lambda: new_record_id("BRD"))
    title: str
    description: str
    category: str = "Emergency"
    severity: Severity = Severity.HIGH
    target_audience: TargetAudience = TargetAudience.ALL
    department_scope: list[str] | None = None
    location: str | None = None
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True
    closed_by: str | None = None
    closed_at: datetime | None = None
    closure_reason: str | None = None
    view_count: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def color(self) -> str:
        return _SEVERITY_COLORS.get(self.severity, "blue")
