"""Derived analytics views. Computed on demand, never persisted."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CategoryCount(BaseModel):
    type: str
    count: int


class RiskZone(BaseModel):
    zone: str
    incident_count: int


class AnalyticsSnapshot(BaseModel):
    """Aggregate safety statistics over the whole incident corpus."""

    total_incidents: int
    resolved_count: int
    pending_count: int
    avg_response_time_seconds: float | None
    by_type: list[CategoryCount] = Field(default_factory=list)
    by_severity: dict[str, int] = Field(default_factory=dict)
    monthly_trend: dict[str, int] = Field(default_factory=dict)
    high_risk_zones: list[RiskZone] = Field(default_factory=list)
    repeat_complaints: int = 0
    sos_total: int = 0
    sos_active: int = 0
    counseling_pending: int = 0
    active_broadcasts: int = 0
    generated_at: datetime


class DashboardOverview(BaseModel):
    """Landing-view counters for the reviewing staff."""

    active_sos: int
    pending_complaints: int
    pending_counseling: int
    active_broadcasts: int
    generated_at: datetime
