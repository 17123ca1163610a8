"""Record store adapters: Redis for deployments, in-process for dev/tests.

The durable store is an external collaborator; this module only adapts it
to the small surface the incident services need:

* **collections** -- id -> JSON document maps with compare-and-set
  replacement, used for SOS alerts, complaints, counseling requests and
  broadcasts;
* **streams** -- append-only lists used for the investigation trail.
  Position in the list is the entry's sequence number.

Values are opaque ``bytes`` (orjson-encoded by the repository layer).
Backend failures surface as :class:`TransportError`.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterator
from typing import Protocol, runtime_checkable

import structlog

from src.services.errors import TransportError

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class RecordStore(Protocol):
    """Async record store interface."""

    async def insert(self, collection: str, record_id: str, value: bytes) -> bool: ...

    async def get(self, collection: str, record_id: str) -> bytes | None: ...

    async def replace(self, collection: str, record_id: str, expected: bytes, value: bytes) -> bool: ...

    async def values(self, collection: str) -> list[bytes]: ...

    async def append(self, stream: str, value: bytes) -> int: ...

    async def read(self, stream: str, start: int = 0) -> list[bytes]: ...

    async def last(self, stream: str) -> bytes | None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisRecordStore:
    """Redis-backed store using ``redis.asyncio`` with connection pooling.

    Collections are hashes (``<ns>c:<name>``), streams are lists
    (``<ns>s:<name>``). Compare-and-set uses WATCH/MULTI on the hash.
    """

    __slots__ = ("_namespace", "_pool", "_redis")

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        namespace: str = "safetyhub:",
        max_connections: int = 20,
    ) -> None:
        import redis.asyncio as aioredis

        self._namespace = namespace
        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    def _hash(self, collection: str) -> str:
        return f"{self._namespace}c:{collection}"

    def _list(self, stream: str) -> str:
        return f"{self._namespace}s:{stream}"

    @contextlib.contextmanager
    def _guard(self, op: str, key: str) -> Iterator[None]:
        from redis.exceptions import RedisError

        try:
            yield
        except RedisError as exc:
            logger.warning("store.redis_op_failed", op=op, key=key, error=str(exc))
            raise TransportError(f"Record store unavailable during {op}") from exc

    # -- collections -----------------------------------------------------------

    async def insert(self, collection: str, record_id: str, value: bytes) -> bool:
        key = self._hash(collection)
        with self._guard("insert", key):
            return bool(await self._redis.hsetnx(key, record_id, value))

    async def get(self, collection: str, record_id: str) -> bytes | None:
        key = self._hash(collection)
        with self._guard("get", key):
            return await self._redis.hget(key, record_id)

    async def replace(self, collection: str, record_id: str, expected: bytes, value: bytes) -> bool:
        from redis.exceptions import WatchError

        key = self._hash(collection)
        with self._guard("replace", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    current = await pipe.hget(key, record_id)
                    if current != expected:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.hset(key, record_id, value)
                    await pipe.execute()
                except WatchError:
                    return False
        return True

    async def values(self, collection: str) -> list[bytes]:
        key = self._hash(collection)
        with self._guard("values", key):
            return list(await self._redis.hvals(key))

    # -- streams ---------------------------------------------------------------

    async def append(self, stream: str, value: bytes) -> int:
        key = self._list(stream)
        with self._guard("append", key):
            return int(await self._redis.rpush(key, value))

    async def read(self, stream: str, start: int = 0) -> list[bytes]:
        key = self._list(stream)
        with self._guard("read", key):
            return list(await self._redis.lrange(key, max(start, 0), -1))

    async def last(self, stream: str) -> bytes | None:
        key = self._list(stream)
        with self._guard("last", key):
            return await self._redis.lindex(key, -1)

    # -- lifecycle -------------------------------------------------------------

    async def ping(self) -> bool:
        """Return *True* if the Redis server is reachable."""
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False

    async def close(self) -> None:
        await self._redis.aclose()
        await self._pool.aclose()


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryRecordStore:
    """Process-local store for development and tests.

    Guarded by an :class:`asyncio.Lock`; sufficient for a single-process
    event loop. Nothing survives a restart.
    """

    __slots__ = ("_collections", "_lock", "_streams")

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, bytes]] = {}
        self._streams: dict[str, list[bytes]] = {}
        self._lock = asyncio.Lock()

    async def insert(self, collection: str, record_id: str, value: bytes) -> bool:
        async with self._lock:
            bucket = self._collections.setdefault(collection, {})
            if record_id in bucket:
                return False
            bucket[record_id] = value
            return True

    async def get(self, collection: str, record_id: str) -> bytes | None:
        async with self._lock:
            return self._collections.get(collection, {}).get(record_id)

    async def replace(self, collection: str, record_id: str, expected: bytes, value: bytes) -> bool:
        async with self._lock:
            bucket = self._collections.get(collection, {})
            if bucket.get(record_id) != expected:
                return False
            bucket[record_id] = value
            return True

    async def values(self, collection: str) -> list[bytes]:
        async with self._lock:
            return list(self._collections.get(collection, {}).values())

    async def append(self, stream: str, value: bytes) -> int:
        async with self._lock:
            entries = self._streams.setdefault(stream, [])
            entries.append(value)
            return len(entries)

    async def read(self, stream: str, start: int = 0) -> list[bytes]:
        async with self._lock:
            return list(self._streams.get(stream, [])[max(start, 0):])

    async def last(self, stream: str) -> bytes | None:
        async with self._lock:
            entries = self._streams.get(stream)
            return entries[-1] if entries else None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    @property
    def size(self) -> int:
        """Number of stored records across all collections."""
        return sum(len(bucket) for bucket in self._collections.values())


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


async def open_record_store(
    redis_url: str | None,
    *,
    allow_fallback: bool = True,
) -> RecordStore:
    """Return the configured store, checking Redis reachability once.

    With *allow_fallback* an unreachable Redis degrades to the in-memory
    store (development only: records would not be shared or durable).
    """
    if not redis_url:
        logger.info("store.inmemory_selected")
        return InMemoryRecordStore()

    try:
        redis_store = RedisRecordStore(url=redis_url)
    except Exception:
        if not allow_fallback:
            raise
        logger.warning("store.redis_init_failed", redis_url=redis_url, exc_info=True)
        return InMemoryRecordStore()

    if await redis_store.ping():
        logger.info("store.redis_connected")
        return redis_store

    if allow_fallback:
        logger.warning("store.redis_unavailable_using_inmemory", redis_url=redis_url)
        with contextlib.suppress(Exception):
            await redis_store.close()
        return InMemoryRecordStore()

    logger.error("store.redis_unavailable", redis_url=redis_url)
    return redis_store
