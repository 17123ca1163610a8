from src.models.actor import ActorContext
from src.models.analytics import AnalyticsSnapshot, CategoryCount, DashboardOverview, RiskZone
from src.models.broadcast import BroadcastAlert
from src.models.enums import (
    ActorRole,
    ComplaintCategory,
    ComplaintStatus,
    CounselingKind,
    CounselingStatus,
    CounselingUrgency,
    IncidentKind,
    Severity,
    SosStatus,
    TargetAudience,
)
from src.models.incident import Complaint, Coordinates, CounselingRequest, SosAlert
from src.models.request import (
    BroadcastSubmission,
    ComplaintSubmission,
    CounselingSubmission,
    SosSubmission,
)
from src.models.trail import InvestigationLogEntry, Message

__all__ = [
    "ActorContext",
    "ActorRole",
    "AnalyticsSnapshot",
    "BroadcastAlert",
    "BroadcastSubmission",
    "CategoryCount",
    "Complaint",
    "ComplaintCategory",
    "ComplaintStatus",
    "ComplaintSubmission",
    "Coordinates",
    "CounselingKind",
    "CounselingRequest",
    "CounselingStatus",
    "CounselingSubmission",
    "CounselingUrgency",
    "DashboardOverview",
    "IncidentKind",
    "InvestigationLogEntry",
    "Message",
    "RiskZone",
    "Severity",
    "SosAlert",
    "SosStatus",
    "SosSubmission",
    "TargetAudience",
]
