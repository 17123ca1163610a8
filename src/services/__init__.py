"""SafetyHub service layer -- incident lifecycle, trail, broadcasts, analytics.

Services are transport-agnostic: they take an explicit
:class:`~src.models.actor.ActorContext`, raise the errors in
:mod:`src.services.errors`, and persist through a
:class:`~src.services.store.RecordStore`.
"""

from __future__ import annotations

from src.services.analytics import AnalyticsService, compute_analytics
from src.services.api_client import SafetyApiClient
from src.services.broadcast import BroadcastService
from src.services.complaints import ComplaintService
from src.services.counseling import CounselingService
from src.services.directory import Account, AudienceDirectory, InMemoryDirectory
from src.services.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    SafetyHubError,
    TransportError,
    ValidationError,
)
from src.services.intake import IncidentIntake
from src.services.investigation import InvestigationTrail
from src.services.monitoring import SosMonitor
from src.services.notifications import (
    LoggingNotificationChannel,
    NotificationChannel,
    WebhookNotificationChannel,
)
from src.services.repository import IncidentRepository
from src.services.sos import SosService
from src.services.store import InMemoryRecordStore, RecordStore, RedisRecordStore, open_record_store

__all__ = [
    "AccessDeniedError",
    "Account",
    "AnalyticsService",
    "AudienceDirectory",
    "BroadcastService",
    "ComplaintService",
    "CounselingService",
    "InMemoryDirectory",
    "InMemoryRecordStore",
    "IncidentIntake",
    "IncidentRepository",
    "InvalidTransitionError",
    "InvestigationTrail",
    "LoggingNotificationChannel",
    "NotFoundError",
    "NotificationChannel",
    "RecordStore",
    "RedisRecordStore",
    "SafetyApiClient",
    "SafetyHubError",
    "SosMonitor",
    "SosService",
    "TransportError",
    "ValidationError",
    "WebhookNotificationChannel",
    "compute_analytics",
    "open_record_store",
]
