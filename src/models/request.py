"""Submission payloads accepted by incident intake and broadcasting.

Enum fields accept any casing (``"high"``, ``"HIGH"``, ``"under_review"``)
and the field names used by the portal's web client (``type``,
``target``, ``departments``) are accepted as aliases.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from src.models.enums import (
    ComplaintCategory,
    CounselingKind,
    CounselingUrgency,
    Severity,
    TargetAudience,
    coerce_enum,
)
from src.models.incident import Coordinates

_DEFAULT_APPOINTMENT_TIME = time(9, 0, tzinfo=UTC)

_PAYLOAD_CONFIG = {
    "str_strip_whitespace": True,
    "populate_by_name": True,
    "extra": "ignore",
}


class SosSubmission(BaseModel):
    model_config = _PAYLOAD_CONFIG

    reporter_name: str | None = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("reporter_name", "studentName"),
    )
    coordinates: Coordinates | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_coordinates(cls, data: object) -> object:
        # The web client sends latitude/longitude at the top level.
        if isinstance(data, dict) and data.get("coordinates") is None:
            lat, lon = data.get("latitude"), data.get("longitude")
            if lat is not None and lon is not None:
                data = {**data, "coordinates": {"latitude": lat, "longitude": lon}}
        return data


class ComplaintSubmission(BaseModel):
    model_config = _PAYLOAD_CONFIG

    category: ComplaintCategory = Field(
        default=ComplaintCategory.OTHER,
        validation_alias=AliasChoices("category", "type"),
    )
    severity: Severity = Severity.MEDIUM
    description: str = Field(..., min_length=5, max_length=5000)
    anonymous: bool = False
    location: str | None = Field(default=None, max_length=200)
    department: str | None = Field(default=None, max_length=100)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: object) -> object:
        return coerce_enum(ComplaintCategory, v)

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v: object) -> object:
        return coerce_enum(Severity, v)


class CounselingSubmission(BaseModel):
    model_config = _PAYLOAD_CONFIG

    kind: CounselingKind = Field(..., validation_alias=AliasChoices("kind", "type"))
    urgency: CounselingUrgency = CounselingUrgency.ROUTINE
    reason: str = Field(..., min_length=5, max_length=5000)
    preferred_time: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("preferred_time", "preferredDate"),
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _kind(cls, v: object) -> object:
        return coerce_enum(CounselingKind, v)

    @field_validator("urgency", mode="before")
    @classmethod
    def _urgency(cls, v: object) -> object:
        return coerce_enum(CounselingUrgency, v)

    @field_validator("preferred_time", mode="before")
    @classmethod
    def _date_only_means_morning(cls, v: object) -> object:
        if isinstance(v, str) and len(v.strip()) == 10:
            try:
                return datetime.combine(date.fromisoformat(v.strip()), _DEFAULT_APPOINTMENT_TIME)
            except ValueError:
                return v
        return v


class BroadcastSubmission(BaseModel):
    model_config = _PAYLOAD_CONFIG

    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=5, max_length=5000)
    category: str = Field(
        default="Emergency",
        max_length=100,
        validation_alias=AliasChoices("category", "type"),
    )
    severity: Severity = Severity.HIGH
    target_audience: TargetAudience = Field(
        default=TargetAudience.ALL,
        validation_alias=AliasChoices("target_audience", "targetAudience", "target"),
    )
    department_scope: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("department_scope", "departmentScope", "departments"),
    )
    location: str | None = Field(default=None, max_length=200)

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v: object) -> object:
        return coerce_enum(Severity, v)

    @field_validator("target_audience", mode="before")
    @classmethod
    def _target(cls, v: object) -> object:
        return coerce_enum(TargetAudience, v)

    @field_validator("department_scope")
    @classmethod
    def _clean_scope(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        cleaned = [d.strip() for d in v if d and d.strip()]
        return cleaned or None

    @model_validator(mode="after")
    def _scope_required_for_departments(self) -> BroadcastSubmission:
        if self.target_audience == TargetAudience.DEPARTMENTS and not self.department_scope:
            raise ValueError("department_scope is required when target_audience is 'departments'")
        return self
