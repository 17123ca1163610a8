"""Append-only investigation trail of a complaint.

Each complaint owns two streams:

* ``complaint:<id>:log`` -- confidential reviewer case notes;
* ``complaint:<id>:messages`` -- the reporter/reviewer conversation.

Entries are never edited or removed. An entry's ``seq`` is its 1-based
position in the stream, so any two reads of a stream are prefix-related
and ``after_seq`` fetches just the part a client has not seen yet.
Timestamps never go backwards within a stream: appends to one complaint
are serialised and each entry is stamped no earlier than the last.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from src.models.actor import ActorContext
from src.models.enums import ActorRole
from src.models.incident import Complaint, utcnow
from src.models.trail import InvestigationLogEntry, Message
from src.services.complaints import ComplaintService, can_view_thread
from src.services.errors import AccessDeniedError, ValidationError
from src.services.repository import IncidentRepository

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=BaseModel)

_MAX_CONTENT_LENGTH = 5000


def log_stream(complaint_id: str) -> str:
    return f"complaint:{complaint_id}:log"


def message_stream(complaint_id: str) -> str:
    return f"complaint:{complaint_id}:messages"


def _clean_content(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Content must not be empty", field="content")
    if len(text) > _MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Content must be at most {_MAX_CONTENT_LENGTH} characters",
            field="content",
        )
    return text


def _check_after_seq(after_seq: int) -> None:
    if after_seq < 0:
        raise ValidationError("after_seq must be zero or positive", field="after_seq")


class InvestigationTrail:
    """Case notes and messages attached to complaints.

    Parameters
    ----------
    repository:
        Stream storage.
    complaints:
        Used to load the complaint and decide who is a party to it.
    clock:
        Source of entry timestamps.
    """

    __slots__ = ("_clock", "_complaints", "_locks", "_repo")

    def __init__(
        self,
        repository: IncidentRepository,
        complaints: ComplaintService,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._complaints = complaints
        self._clock = clock
        # Held only while an append is in flight; idle locks are collected.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Case notes (reviewer only)
    # ------------------------------------------------------------------

    async def append_log(
        self,
        complaint_id: str,
        actor: ActorContext,
        content: str,
    ) -> InvestigationLogEntry:
        """Add a confidential case note. Reviewers only."""
        await self._complaints.load(complaint_id)
        self._require_reviewer(actor)
        text = _clean_content(content)

        entry = await self._append(
            complaint_id,
            log_stream(complaint_id),
            InvestigationLogEntry,
            {"complaint_id": complaint_id, "author_ref": actor.actor_ref, "content": text},
        )
        logger.info(
            "investigation.log_appended",
            complaint_id=complaint_id,
            seq=entry.seq,
            author_ref=actor.actor_ref,
        )
        return entry

    async def list_logs(
        self,
        complaint_id: str,
        actor: ActorContext,
        after_seq: int = 0,
    ) -> list[InvestigationLogEntry]:
        _check_after_seq(after_seq)
        await self._complaints.load(complaint_id)
        self._require_reviewer(actor)
        return await self._repo.read(log_stream(complaint_id), InvestigationLogEntry, after_seq=after_seq)

    # ------------------------------------------------------------------
    # Messages (reporter <-> reviewer)
    # ------------------------------------------------------------------

    async def send_message(
        self,
        complaint_id: str,
        actor: ActorContext,
        content: str,
    ) -> Message:
        """Post to the complaint thread.

        The complaint's own reporter always posts as ``reporter``, whatever
        the account's role. On anonymous complaints their messages are
        stored without a sender reference.
        """
        complaint = await self._complaints.load(complaint_id)
        self._require_party(complaint, actor)
        text = _clean_content(content)

        is_reporter = complaint.is_reported_by(actor.actor_ref)
        sender_role = ActorRole.REPORTER if is_reporter else actor.role
        hide_sender = is_reporter and complaint.anonymous
        message = await self._append(
            complaint_id,
            message_stream(complaint_id),
            Message,
            {
                "complaint_id": complaint_id,
                "sender_role": sender_role.value,
                "sender_ref": None if hide_sender else actor.actor_ref,
                "content": text,
            },
        )
        logger.info(
            "investigation.message_sent",
            complaint_id=complaint_id,
            seq=message.seq,
            sender_role=sender_role.value,
        )
        return message

    async def list_messages(
        self,
        complaint_id: str,
        actor: ActorContext,
        after_seq: int = 0,
    ) -> list[Message]:
        _check_after_seq(after_seq)
        complaint = await self._complaints.load(complaint_id)
        self._require_party(complaint, actor)
        return await self._repo.read(message_stream(complaint_id), Message, after_seq=after_seq)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_reviewer(actor: ActorContext) -> None:
        if not actor.is_reviewer:
            raise AccessDeniedError("Investigation log is restricted to reviewers", resource="Investigation log")

    @staticmethod
    def _require_party(complaint: Complaint, actor: ActorContext) -> None:
        if not can_view_thread(complaint, actor):
            raise AccessDeniedError("Not a party to this complaint", resource="Complaint messages")

    def _lock_for(self, complaint_id: str) -> asyncio.Lock:
        lock = self._locks.get(complaint_id)
        if lock is None:
            lock = self._locks[complaint_id] = asyncio.Lock()
        return lock

    async def _append(
        self,
        complaint_id: str,
        stream: str,
        model: type[E],
        fields: dict[str, Any],
    ) -> E:
        async with self._lock_for(complaint_id):
            now = self._clock()
            last = await self._repo.last_fields(stream)
            if last is not None:
                previous = datetime.fromisoformat(last["timestamp"])
                if previous > now:
                    now = previous
            return await self._repo.append(stream, model, {**fields, "timestamp": now})
