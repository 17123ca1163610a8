"""Audience directory: who exists and which audience predicates they match.

The institution's account directory is an external collaborator. This
module defines the small surface broadcast targeting needs from it and an
in-memory implementation for development and tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from src.models.broadcast import BroadcastAlert
from src.models.enums import TargetAudience


@dataclass(slots=True, frozen=True)
class Account:
    """Directory entry relevant to broadcast targeting."""

    ref: str
    department: str | None = None
    is_faculty: bool = False
    hostel_resident: bool = False


@runtime_checkable
class AudienceDirectory(Protocol):
    async def accounts(self) -> list[Account]: ...

    async def lookup(self, ref: str) -> Account | None: ...


def matches_audience(alert: BroadcastAlert, account: Account) -> bool:
    """Whether *account* belongs to *alert*'s target audience.

    Department matching is case-insensitive and ignores surrounding
    whitespace.
    """
    audience = alert.target_audience
    if audience == TargetAudience.ALL:
        return True
    if audience == TargetAudience.DEPARTMENTS:
        if not account.department or not alert.department_scope:
            return False
        scope = {d.strip().casefold() for d in alert.department_scope}
        return account.department.strip().casefold() in scope
    if audience == TargetAudience.HOSTELS:
        return account.hostel_resident
    if audience == TargetAudience.FACULTY:
        return account.is_faculty
    return False


class InMemoryDirectory:
    """Process-local directory, seeded explicitly."""

    __slots__ = ("_accounts",)

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._accounts: dict[str, Account] = {a.ref: a for a in accounts}

    def register(self, account: Account) -> None:
        self._accounts[account.ref] = account

    async def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    async def lookup(self, ref: str) -> Account | None:
        return self._accounts.get(ref)

    def __len__(self) -> int:
        return len(self._accounts)
