from __future__ import annotations

from enum import StrEnum


class ActorRole(StrEnum):
    __slots__ = ()

    REPORTER = "reporter"
    REVIEWER = "reviewer"


class IncidentKind(StrEnum):
    __slots__ = ()

    SOS = "sos"
    COMPLAINT = "complaint"
    COUNSELING = "counseling"


class SosStatus(StrEnum):
    __slots__ = ()

    ACTIVE = "ACTIVE"
    RESPONDING = "RESPONDING"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class ComplaintStatus(StrEnum):
    __slots__ = ()

    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    ACTION_TAKEN = "Action Taken"
    CLOSED = "Closed"


class ComplaintCategory(StrEnum):
    __slots__ = ()

    RAGGING = "Ragging"
    HARASSMENT = "Harassment"
    BULLYING = "Bullying"
    MISCONDUCT = "Misconduct"
    VIOLENCE = "Violence"
    INFRASTRUCTURE_HAZARD = "Infrastructure Hazard"
    DISCRIMINATION = "Discrimination"
    ABUSE = "Abuse"
    THEFT = "Theft"
    OTHER = "Other"


class Severity(StrEnum):
    __slots__ = ()

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class CounselingKind(StrEnum):
    __slots__ = ()

    MEDICAL = "medical"
    PSYCHOLOGICAL = "psychological"


class CounselingUrgency(StrEnum):
    __slots__ = ()

    EMERGENCY = "Emergency"
    URGENT = "Urgent"
    ROUTINE = "Routine"


class CounselingStatus(StrEnum):
    __slots__ = ()

    PENDING = "Pending"
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    REFERRED = "Referred"


class TargetAudience(StrEnum):
    __slots__ = ()

    ALL = "all"
    DEPARTMENTS = "departments"
    HOSTELS = "hostels"
    FACULTY = "faculty"


def coerce_enum(enum_cls: type[StrEnum], value: object) -> object:
    """Match *value* against *enum_cls* ignoring case and ``_``/space.

    Returns the member on a match and *value* unchanged otherwise, so
    pydantic can still report the original input in its error.
    """
    if isinstance(value, enum_cls) or not isinstance(value, str):
        return value
    key = value.strip().casefold().replace("_", " ")
    for member in enum_cls:
        if member.value.casefold().replace("_", " ") == key:
            return member
    return value
