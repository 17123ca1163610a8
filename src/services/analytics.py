"""Safety analytics derived from the full incident corpus.

Nothing here is persisted: every call recomputes from the current
records. :func:`compute_analytics` is a pure function so it can be tested
without a store; :class:`AnalyticsService` loads the collections and
delegates to it.

Definitions
-----------
``total_incidents``
    Number of complaints. SOS alerts are reported separately
    (``sos_total`` / ``sos_active``).
``resolved_count`` / ``pending_count``
    Complaints that are ``Closed`` / not yet ``Closed``.
``avg_response_time_seconds``
    Mean time from creation to resolution over closed complaints and
    resolved SOS alerts; ``None`` when nothing has been resolved.
``high_risk_zones``
    Locations recurring in at least ``zone_threshold`` incidents:
    complaint ``location`` (grouped case-insensitively) and SOS
    coordinates rounded to ``zone_precision`` decimals.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from datetime import datetime

import structlog

from src.models.analytics import AnalyticsSnapshot, CategoryCount, DashboardOverview, RiskZone
from src.models.broadcast import BroadcastAlert
from src.models.enums import ComplaintStatus, CounselingStatus, Severity, SosStatus
from src.models.incident import Complaint, CounselingRequest, SosAlert, utcnow
from src.services.repository import BROADCASTS, COMPLAINTS, COUNSELING, SOS, IncidentRepository

logger = structlog.get_logger(__name__)


def _average_response_seconds(sos: Sequence[SosAlert], complaints: Sequence[Complaint]) -> float | None:
    durations: list[float] = []
    for complaint in complaints:
        if complaint.status == ComplaintStatus.CLOSED and complaint.closed_at is not None:
            durations.append((complaint.closed_at - complaint.submitted_at).total_seconds())
    for alert in sos:
        if alert.status == SosStatus.RESOLVED and alert.resolved_at is not None:
            durations.append((alert.resolved_at - alert.created_at).total_seconds())
    if not durations:
        return None
    return round(sum(durations) / len(durations), 2)


def _risk_zones(
    sos: Sequence[SosAlert],
    complaints: Sequence[Complaint],
    *,
    threshold: int,
    precision: int,
) -> list[RiskZone]:
    counts: Counter[str] = Counter()
    labels: dict[str, str] = {}

    for complaint in sorted(complaints, key=lambda c: (c.submitted_at, c.id)):
        label = (complaint.location or "").strip()
        if not label:
            continue
        key = label.casefold()
        labels.setdefault(key, label)
        counts[key] += 1

    for alert in sos:
        if alert.coordinates is None:
            continue
        label = f"{alert.coordinates.latitude:.{precision}f},{alert.coordinates.longitude:.{precision}f}"
        labels.setdefault(label, label)
        counts[label] += 1

    zones = [
        RiskZone(zone=labels[key], incident_count=count)
        for key, count in counts.items()
        if count >= threshold
    ]
    return sorted(zones, key=lambda z: (-z.incident_count, z.zone))


def compute_analytics(
    sos: Sequence[SosAlert],
    complaints: Sequence[Complaint],
    counseling: Sequence[CounselingRequest] = (),
    broadcasts: Sequence[BroadcastAlert] = (),
    *,
    zone_threshold: int = 3,
    zone_precision: int = 3,
    now: datetime | None = None,
) -> AnalyticsSnapshot:
    """Aggregate the given records into an :class:`AnalyticsSnapshot`."""
    resolved = sum(1 for c in complaints if c.status == ComplaintStatus.CLOSED)

    by_type = Counter(c.category.value for c in complaints)
    severity_counts = Counter(c.severity for c in complaints)
    monthly = Counter(c.submitted_at.strftime("%Y-%m") for c in complaints)
    per_reporter = Counter(c.reporter_ref for c in complaints if c.reporter_ref is not None)

    return AnalyticsSnapshot(
        total_incidents=len(complaints),
        resolved_count=resolved,
        pending_count=len(complaints) - resolved,
        avg_response_time_seconds=_average_response_seconds(sos, complaints),
        by_type=[
            CategoryCount(type=name, count=count)
            for name, count in sorted(by_type.items(), key=lambda item: (-item[1], item[0]))
        ],
        by_severity={s.value: severity_counts.get(s, 0) for s in Severity},
        monthly_trend=dict(sorted(monthly.items())),
        high_risk_zones=_risk_zones(sos, complaints, threshold=zone_threshold, precision=zone_precision),
        repeat_complaints=sum(1 for count in per_reporter.values() if count > 1),
        sos_total=len(sos),
        sos_active=sum(1 for a in sos if a.is_open),
        counseling_pending=sum(1 for r in counseling if r.status == CounselingStatus.PENDING),
        active_broadcasts=sum(1 for b in broadcasts if b.is_active),
        generated_at=now or utcnow(),
    )


class AnalyticsService:
    """Loads the incident collections and derives analytics views.

    Parameters
    ----------
    repository:
        Source of all four collections.
    zone_threshold:
        Minimum incidents for a location to count as a high-risk zone.
    zone_precision:
        Decimal places SOS coordinates are rounded to when grouping.
    """

    __slots__ = ("_clock", "_repo", "_zone_precision", "_zone_threshold")

    def __init__(
        self,
        repository: IncidentRepository,
        *,
        zone_threshold: int = 3,
        zone_precision: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._zone_threshold = zone_threshold
        self._zone_precision = zone_precision
        self._clock = clock

    async def get_analytics(self) -> AnalyticsSnapshot:
        snapshot = compute_analytics(
            await self._repo.all(SOS, SosAlert),
            await self._repo.all(COMPLAINTS, Complaint),
            await self._repo.all(COUNSELING, CounselingRequest),
            await self._repo.all(BROADCASTS, BroadcastAlert),
            zone_threshold=self._zone_threshold,
            zone_precision=self._zone_precision,
            now=self._clock(),
        )
        logger.info(
            "analytics.computed",
            total_incidents=snapshot.total_incidents,
            resolved=snapshot.resolved_count,
            high_risk_zones=len(snapshot.high_risk_zones),
        )
        return snapshot

    async def get_dashboard(self) -> DashboardOverview:
        sos = await self._repo.all(SOS, SosAlert)
        complaints = await self._repo.all(COMPLAINTS, Complaint)
        counseling = await self._repo.all(COUNSELING, CounselingRequest)
        broadcasts = await self._repo.all(BROADCASTS, BroadcastAlert)
        return DashboardOverview(
            active_sos=sum(1 for a in sos if a.is_open),
            pending_complaints=sum(1 for c in complaints if c.status != ComplaintStatus.CLOSED),
            pending_counseling=sum(1 for r in counseling if r.status == CounselingStatus.PENDING),
            active_broadcasts=sum(1 for b in broadcasts if b.is_active),
            generated_at=self._clock(),
        )
