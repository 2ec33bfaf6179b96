"""Durable key/value storage backing the saved-jobs sets.

Each user's bookmarks live under a single key holding a JSON array of job
identifiers. Two backends share the small ``get``/``set``/``compare_and_set``
contract expected by :class:`jobquest.services.bookmarks.BookmarkStore`:

* :class:`RedisStorage` for deployments, built on ``redis.asyncio``.
* :class:`MemoryStorage` for local development and the test-suite.

Unlike a cache, a failed write is never swallowed here. Backends raise
:class:`StorageWriteError` so the store can roll the toggle back, and
``compare_and_set`` lets several processes share one key without losing
each other's toggles.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from jobquest.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

_GUEST_SCOPE = "guest"

_redis_client: Redis | None = None
_client_lock = asyncio.Lock()


class StorageError(Exception):
    """Base class for durable storage failures."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{message} (key={key})")
        self.key = key


class StorageReadError(StorageError):
    """Raised when the stored value could not be read."""


class StorageWriteError(StorageError):
    """Raised when a value could not be written durably."""


class StorageBackend(Protocol):
    """Contract consumed by the bookmark store."""

    async def get(self, key: str) -> str | None:
        """Return the raw value stored under ``key`` or ``None`` when absent."""

    async def set(self, key: str, value: str) -> None:
        """Persist ``value`` under ``key`` or raise :class:`StorageWriteError`."""

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        """Write ``value`` only if ``key`` still holds ``expected``.

        Returns ``False`` when another writer changed the key first; raises
        :class:`StorageWriteError` when the write itself fails.
        """


def saved_jobs_key(user_id: str | None, *, prefix: str | None = None) -> str:
    """Return the storage key holding ``user_id``'s saved job identifiers.

    Anonymous visitors share the ``guest`` scope.
    """

    resolved_prefix = prefix or get_settings().saved_jobs_key_prefix
    scope = (user_id or "").strip() or _GUEST_SCOPE
    return f"{resolved_prefix}_{scope}"


class MemoryStorage:
    """Process-local storage with the same semantics as :class:`RedisStorage`."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._values[key] = value

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        async with self._lock:
            if self._values.get(key) != expected:
                return False
            self._values[key] = value
            return True

    def snapshot(self) -> dict[str, str]:
        """Return a copy of every stored value (handy for assertions)."""

        return dict(self._values)


def _decode(payload: object) -> str | None:
    if payload is None:
        return None
    if isinstance(payload, bytes):
        return payload.decode("utf-8")
    return str(payload)


class RedisStorage:
    """Redis-backed storage. Values are written without a TTL."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> str | None:
        try:
            payload = await self._redis.get(key)
        except (RedisError, OSError) as exc:
            logger.warning(f"Redis read failed for key {key}: {exc}")
            raise StorageReadError(key, "Unable to read saved jobs") from exc
        return _decode(payload)

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value)
        except (RedisError, OSError) as exc:
            logger.warning(f"Redis write failed for key {key}: {exc}")
            raise StorageWriteError(key, "Unable to persist saved jobs") from exc

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        """Optimistic write using ``WATCH``/``MULTI``; ``False`` on a lost race."""

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = _decode(await pipe.get(key))
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value)
                await pipe.execute()
        except WatchError:
            logger.debug(f"Concurrent write detected on key {key}")
            return False
        except (RedisError, OSError) as exc:
            logger.warning(f"Redis write failed for key {key}: {exc}")
            raise StorageWriteError(key, "Unable to persist saved jobs") from exc
        return True


async def get_redis(settings: AppSettings | None = None) -> Redis:
    """Return the shared Redis client.

    The client is kept even when the start-up ping fails: it reconnects on the
    next command, and until then reads and writes raise storage errors.
    """

    global _redis_client
    active_settings = settings or get_settings()

    # Acquire the lock before checking so concurrent callers share one client.
    async with _client_lock:
        if _redis_client is not None:
            return _redis_client

        client = Redis.from_url(
            active_settings.redis_url, decode_responses=True, encoding="utf-8"
        )
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            logger.warning(
                f"Redis unreachable at {active_settings.redis_url}: {exc} - saved-jobs "
                "requests will fail with 503 until it recovers"
            )
        else:
            logger.info("Redis connection established successfully")

        _redis_client = client
        return _redis_client


async def build_storage(settings: AppSettings | None = None) -> StorageBackend:
    """Create the storage backend selected by ``STORAGE_BACKEND``.

    ``redis`` never degrades to process memory: an unreachable server surfaces
    as :class:`StorageReadError`/:class:`StorageWriteError` on each request.
    """

    active_settings = settings or get_settings()
    if active_settings.storage_backend == "memory":
        logger.info("Using in-memory saved-jobs storage")
        return MemoryStorage()

    return RedisStorage(await get_redis(active_settings))


async def close_redis() -> None:
    """Close the shared Redis connection gracefully."""

    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


__all__ = [
    "MemoryStorage",
    "RedisStorage",
    "StorageBackend",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "build_storage",
    "close_redis",
    "get_redis",
    "saved_jobs_key",
]
