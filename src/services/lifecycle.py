"""Transition tables for every incident kind.

Each table is an explicit adjacency map from a state to the set of states
reachable from it in one step. Terminal states map to an empty set.
Services call :func:`ensure_transition` *before* building the mutated
record, so a rejected request never touches stored state.

SOS::

    ACTIVE ──► RESPONDING ──► RESOLVED
      │  └──────────────────► RESOLVED
      └──► CANCELLED ◄── RESPONDING

Complaint::

    Submitted ──► Under Review ◄──► Action Taken
        └──────────────────────────► Action Taken
    Under Review ──► Closed ◄── Action Taken

Counseling::

    Pending ──► Scheduled ──► Completed
       └──► Referred
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final, TypeVar

from src.models.enums import ComplaintStatus, CounselingStatus, SosStatus
from src.services.errors import InvalidTransitionError

S = TypeVar("S", bound=StrEnum)

SOS_TRANSITIONS: Final[dict[SosStatus, frozenset[SosStatus]]] = {
    SosStatus.ACTIVE: frozenset({SosStatus.RESPONDING, SosStatus.RESOLVED, SosStatus.CANCELLED}),
    SosStatus.RESPONDING: frozenset({SosStatus.RESOLVED, SosStatus.CANCELLED}),
    SosStatus.RESOLVED: frozenset(),
    SosStatus.CANCELLED: frozenset(),
}

COMPLAINT_TRANSITIONS: Final[dict[ComplaintStatus, frozenset[ComplaintStatus]]] = {
    ComplaintStatus.SUBMITTED: frozenset({ComplaintStatus.UNDER_REVIEW, ComplaintStatus.ACTION_TAKEN}),
    ComplaintStatus.UNDER_REVIEW: frozenset({ComplaintStatus.ACTION_TAKEN, ComplaintStatus.CLOSED}),
    ComplaintStatus.ACTION_TAKEN: frozenset({ComplaintStatus.UNDER_REVIEW, ComplaintStatus.CLOSED}),
    ComplaintStatus.CLOSED: frozenset(),
}

COUNSELING_TRANSITIONS: Final[dict[CounselingStatus, frozenset[CounselingStatus]]] = {
    CounselingStatus.PENDING: frozenset({CounselingStatus.SCHEDULED, CounselingStatus.REFERRED}),
    CounselingStatus.SCHEDULED: frozenset({CounselingStatus.COMPLETED}),
    CounselingStatus.COMPLETED: frozenset(),
    CounselingStatus.REFERRED: frozenset(),
}


def allowed_next(table: dict[S, frozenset[S]], current: S) -> list[str]:
    """States reachable from *current*, sorted for stable output."""
    return sorted(state.value for state in table.get(current, frozenset()))


def is_terminal(table: dict[S, frozenset[S]], state: S) -> bool:
    return not table.get(state)


def ensure_transition(
    table: dict[S, frozenset[S]],
    current: S,
    target: S,
    *,
    resource: str,
) -> None:
    """Raise :class:`InvalidTransitionError` unless ``current -> target`` is an edge."""
    if target not in table.get(current, frozenset()):
        raise InvalidTransitionError(
            resource=resource,
            current=current.value,
            requested=target.value,
            allowed=allowed_next(table, current),
        )


def parse_state(enum_cls: type[S], value: object, *, resource: str, current: S) -> S:
    """Turn a requested state string into *enum_cls*.

    An unknown state name is reported the same way as an illegal edge, so
    callers always learn which states they *can* request.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().casefold().replace("_", " ")
        for member in enum_cls:
            if member.value.casefold() == key:
                return member
    table = _TABLES[enum_cls]
    raise InvalidTransitionError(
        resource=resource,
        current=current.value,
        requested=str(value),
        allowed=allowed_next(table, current),
        message=f"Unknown {resource} state '{value}'",
    )


_TABLES: Final[dict[type[StrEnum], dict]] = {
    SosStatus: SOS_TRANSITIONS,
    ComplaintStatus: COMPLAINT_TRANSITIONS,
    CounselingStatus: COUNSELING_TRANSITIONS,
}
