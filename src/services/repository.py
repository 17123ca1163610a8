"""Typed access to incident records on top of a :class:`RecordStore`.

Updates are read-modify-write with compare-and-set: the mutation callback
runs against the freshest stored record on every attempt, so any legality
check it performs (the lifecycle tables) is always evaluated against
authoritative state rather than a caller's cached copy.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Final, TypeVar

import orjson
import structlog
from pydantic import BaseModel

from src.services.errors import NotFoundError, TransportError
from src.services.store import RecordStore

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

SOS: Final = "sos"
COMPLAINTS: Final = "complaints"
COUNSELING: Final = "counseling"
BROADCASTS: Final = "broadcasts"

_RESOURCE_NAMES: Final[dict[str, str]] = {
    SOS: "SOS alert",
    COMPLAINTS: "Complaint",
    COUNSELING: "Counseling request",
    BROADCASTS: "Broadcast alert",
}


def _encode(record: BaseModel) -> bytes:
    return orjson.dumps(record.model_dump(mode="json"))


def _decode(model: type[M], raw: bytes) -> M:
    return model.model_validate(orjson.loads(raw))


def resource_name(collection: str) -> str:
    return _RESOURCE_NAMES.get(collection, collection)


class IncidentRepository:
    """Collections of records plus append-only streams.

    Parameters
    ----------
    store:
        The backing :class:`RecordStore`.
    cas_retries:
        How many times an update is retried after losing a
        compare-and-set race before giving up with :class:`TransportError`.
    """

    __slots__ = ("_cas_retries", "_store")

    def __init__(self, store: RecordStore, *, cas_retries: int = 5) -> None:
        self._store = store
        self._cas_retries = cas_retries

    @property
    def store(self) -> RecordStore:
        return self._store

    # -- collections -----------------------------------------------------------

    async def add(self, collection: str, record_id: str, record: M) -> M:
        created = await self._store.insert(collection, record_id, _encode(record))
        if not created:
            raise ValueError(f"duplicate {resource_name(collection)} id {record_id!r}")
        return record

    async def get(self, collection: str, record_id: str, model: type[M]) -> M:
        raw = await self._store.get(collection, record_id)
        if raw is None:
            raise NotFoundError(resource_name(collection), record_id)
        return _decode(model, raw)

    async def all(self, collection: str, model: type[M]) -> list[M]:
        return [_decode(model, raw) for raw in await self._store.values(collection)]

    async def update(
        self,
        collection: str,
        record_id: str,
        model: type[M],
        mutate: Callable[[M], M],
    ) -> M:
        """Apply *mutate* atomically; exceptions from *mutate* abort untouched."""
        for attempt in range(1, self._cas_retries + 1):
            raw = await self._store.get(collection, record_id)
            if raw is None:
                raise NotFoundError(resource_name(collection), record_id)
            updated = mutate(_decode(model, raw))
            if await self._store.replace(collection, record_id, raw, _encode(updated)):
                return updated
            logger.info(
                "repository.cas_conflict",
                collection=collection,
                record_id=record_id,
                attempt=attempt,
            )
        raise TransportError(
            f"Could not update {resource_name(collection)} {record_id} "
            f"after {self._cas_retries} concurrent-write retries",
        )

    # -- streams ---------------------------------------------------------------

    async def append(self, stream: str, model: type[M], fields: dict[str, Any]) -> M:
        """Append *fields* and return the entry with its sequence number."""
        seq = await self._store.append(stream, orjson.dumps(fields))
        return model.model_validate({**fields, "seq": seq})

    async def read(self, stream: str, model: type[M], *, after_seq: int = 0) -> list[M]:
        """Entries with ``seq > after_seq`` in append order."""
        raws = await self._store.read(stream, start=after_seq)
        return [
            model.model_validate({**orjson.loads(raw), "seq": after_seq + offset})
            for offset, raw in enumerate(raws, start=1)
        ]

    async def last_fields(self, stream: str) -> dict[str, Any] | None:
        raw = await self._store.last(stream)
        return orjson.loads(raw) if raw is not None else None
