"""Durable, observable set of saved job identifiers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable

from jobquest.storage import StorageBackend, StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)

SavedIdsListener = Callable[[tuple[str, ...]], None]

MAX_WRITE_ATTEMPTS = 5


class PersistenceError(Exception):
    """The saved set could not be read from or written to durable storage."""

    def __init__(self, message: str, *, job_id: str | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id


def _unique_in_order(job_ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for job_id in job_ids:
        if job_id not in seen:
            seen.add(job_id)
            ordered.append(job_id)
    return ordered


def decode_saved_ids(raw: str | None, *, key: str) -> list[str]:
    """Parse the stored JSON array; corrupt payloads decode to an empty list."""

    if raw is None:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Saved jobs under %s are not valid JSON; starting empty", key)
        return []
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        logger.warning("Saved jobs under %s are not a list of ids; starting empty", key)
        return []
    return _unique_in_order(parsed)


class BookmarkStore:
    """Owns one user's saved job identifiers.

    Every mutation is written to durable storage *before* it becomes visible
    in memory, so a failed write leaves the set exactly as it was. A toggle
    flips the *stored* set with a compare-and-set, so other processes sharing
    the key never lose updates; the in-memory copy adopts whatever was
    written. Toggles within this process are serialized by an
    ``asyncio.Lock``. Consumers observe changes through :meth:`subscribe`.
    """

    def __init__(
        self,
        storage: StorageBackend,
        *,
        key: str,
        initial: Iterable[str] = (),
    ) -> None:
        self._storage = storage
        self._key = key
        self._ids: list[str] = _unique_in_order(initial)
        self._lock = asyncio.Lock()
        self._listeners: list[SavedIdsListener] = []

    @classmethod
    async def load(cls, storage: StorageBackend, *, key: str) -> BookmarkStore:
        """Build a store seeded from the value currently persisted under ``key``."""

        try:
            raw = await storage.get(key)
        except StorageReadError as exc:
            raise PersistenceError("Saved jobs could not be loaded") from exc
        job_ids = decode_saved_ids(raw, key=key)
        logger.debug("Loaded %d saved jobs from %s", len(job_ids), key)
        return cls(storage, key=key, initial=job_ids)

    @property
    def key(self) -> str:
        return self._key

    def is_saved(self, job_id: str) -> bool:
        return job_id in self._ids

    def list_saved(self) -> list[str]:
        """Return the saved identifiers in insertion order."""

        return list(self._ids)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    async def toggle(self, job_id: str) -> bool:
        """Flip membership of ``job_id`` and return whether it is now saved.

        Membership is decided against the stored set, which may include
        changes made by other processes. Raises :class:`PersistenceError` when
        the new set cannot be written; membership is then unchanged.
        """

        async with self._lock:
            for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
                raw = await self._read(job_id)
                current = decode_saved_ids(raw, key=self._key)
                if job_id in current:
                    candidate = [existing for existing in current if existing != job_id]
                    saved = False
                else:
                    candidate = [*current, job_id]
                    saved = True

                try:
                    written = await self._storage.compare_and_set(
                        self._key, raw, json.dumps(candidate)
                    )
                except StorageWriteError as exc:
                    logger.warning(
                        "Toggle of %s rolled back; storage write failed: %s", job_id, exc
                    )
                    raise PersistenceError(
                        "Saved jobs could not be persisted", job_id=job_id
                    ) from exc
                if written:
                    break
                logger.debug(
                    "Saved jobs under %s changed concurrently (attempt %d)", self._key, attempt
                )
            else:
                logger.warning(
                    "Toggle of %s abandoned after %d conflicting writes", job_id, attempt
                )
                raise PersistenceError(
                    "Saved jobs kept changing concurrently", job_id=job_id
                )

            if candidate != self._ids:
                self._ids = candidate
                self._notify()

        logger.info("Job %s %s (%s)", job_id, "saved" if saved else "unsaved", self._key)
        return saved

    async def refresh(self) -> list[str]:
        """Reload the set from durable storage, notifying on change."""

        async with self._lock:
            raw = await self._read()
            reloaded = decode_saved_ids(raw, key=self._key)
            if reloaded != self._ids:
                self._ids = reloaded
                self._notify()
            return list(self._ids)

    async def _read(self, job_id: str | None = None) -> str | None:
        try:
            return await self._storage.get(self._key)
        except StorageReadError as exc:
            raise PersistenceError("Saved jobs could not be loaded", job_id=job_id) from exc

    def subscribe(self, listener: SavedIdsListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = tuple(self._ids)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Saved jobs listener %r failed", listener)


__all__ = ["BookmarkStore", "PersistenceError", "SavedIdsListener", "decode_saved_ids"]
