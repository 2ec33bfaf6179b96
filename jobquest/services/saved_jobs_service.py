"""Business logic powering the saved-jobs API endpoints.

:class:`SavedJobsService` is the consumer side of the reconciliation core for
one user. It subscribes to the user's :class:`BookmarkStore` and invalidates
the :class:`CollectionFetcher` snapshot the moment the saved set changes, so
a collection built for an older set is never served. The next collection
request re-materializes the current set.

:class:`SavedJobsRegistry` hands out one service per storage key so requests
for the same user observe the same store, and keeps only the most recently
used users in memory.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict

from jobquest.schemas.saved_jobs import (
    LookupErrorDetail,
    SavedJobCollection,
    SavedJobIds,
    SavedJobItem,
    SavedJobStatus,
)
from jobquest.services.bookmarks import (
    BookmarkStore,
    CollectionFetcher,
    CollectionSnapshot,
    JobLookupResult,
)
from jobquest.services.job_lookup import JobLookup
from jobquest.settings import DEFAULT_MAX_CACHED_USERS
from jobquest.storage import StorageBackend, saved_jobs_key

logger = logging.getLogger(__name__)


class SavedJobsService:
    """Coordinates one user's bookmark store with its collection fetcher."""

    def __init__(
        self,
        *,
        store: BookmarkStore,
        fetcher: CollectionFetcher,
        user_id: str | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._user_id = user_id
        self._unsubscribe = store.subscribe(self._on_saved_ids_changed)

    @property
    def store(self) -> BookmarkStore:
        return self._store

    @property
    def fetcher(self) -> CollectionFetcher:
        return self._fetcher

    def saved_ids(self) -> SavedJobIds:
        job_ids = self._store.list_saved()
        return SavedJobIds(user_id=self._user_id, total=len(job_ids), job_ids=job_ids)

    def status(self, job_id: str) -> SavedJobStatus:
        return SavedJobStatus(job_id=job_id, saved=self._store.is_saved(job_id))

    async def toggle(self, job_id: str) -> SavedJobStatus:
        """Flip ``job_id``; :class:`PersistenceError` propagates to the caller."""

        saved = await self._store.toggle(job_id)
        return SavedJobStatus(job_id=job_id, saved=saved)

    async def refresh(self) -> SavedJobIds:
        await self._store.refresh()
        return self.saved_ids()

    async def collection(self, *, retry: bool = False) -> SavedJobCollection:
        """Return the saved jobs resolved into full records.

        The last published snapshot is reused while it still matches the saved
        set; ``retry`` forces a fresh lookup of every id, including failures.
        """

        current_ids = tuple(self._store.list_saved())
        snapshot = self._fetcher.snapshot
        if retry or snapshot is None or snapshot.job_ids != current_ids:
            results = await self._fetcher.materialize(current_ids)
            snapshot = self._fetcher.snapshot
            if results is None and snapshot is None:
                return SavedJobCollection(
                    user_id=self._user_id,
                    epoch=self._fetcher.epoch,
                    loading=True,
                    total=0,
                )
        return self._collection_from_snapshot(snapshot)

    def close(self) -> None:
        self._unsubscribe()

    def _on_saved_ids_changed(self, job_ids: tuple[str, ...]) -> None:
        logger.debug("Saved set changed to %d ids; invalidating collection", len(job_ids))
        self._fetcher.invalidate()

    def _collection_from_snapshot(self, snapshot: CollectionSnapshot) -> SavedJobCollection:
        items = [self._item_from_result(result) for result in snapshot.results]
        return SavedJobCollection(
            user_id=self._user_id,
            epoch=snapshot.epoch,
            total=len(items),
            failed=sum(1 for item in items if item.status == "failed"),
            items=items,
        )

    @staticmethod
    def _item_from_result(result: JobLookupResult) -> SavedJobItem:
        error = None
        if result.error is not None:
            error = LookupErrorDetail(kind=result.error.kind.value, message=result.error.message)
        return SavedJobItem(
            job_id=result.job_id,
            status=result.status.value,
            job=result.job,
            error=error,
        )


class SavedJobsRegistry:
    """Lazily builds and caches one :class:`SavedJobsService` per user.

    At most ``max_users`` services are kept; the least recently used one is
    closed and dropped when a new user arrives. Dropping a service loses only
    its cached collection, since the saved set itself lives in storage.
    Concurrent first requests for one user share a single load, while loads
    for different users proceed independently.
    """

    def __init__(
        self,
        *,
        storage: StorageBackend,
        lookup: JobLookup,
        key_prefix: str | None = None,
        max_concurrency: int | None = None,
        max_users: int = DEFAULT_MAX_CACHED_USERS,
    ) -> None:
        if max_users < 1:
            raise ValueError("max_users must be positive")
        self._storage = storage
        self._lookup = lookup
        self._key_prefix = key_prefix
        self._max_concurrency = max_concurrency
        self._max_users = max_users
        self._services: OrderedDict[str, SavedJobsService] = OrderedDict()
        self._loading: dict[str, asyncio.Task[SavedJobsService]] = {}

    def __len__(self) -> int:
        return len(self._services)

    async def for_user(self, user_id: str | None) -> SavedJobsService:
        key = saved_jobs_key(user_id, prefix=self._key_prefix)

        service = self._services.get(key)
        if service is not None:
            self._services.move_to_end(key)
            return service

        task = self._loading.get(key)
        if task is None:
            task = asyncio.create_task(self._build(key, user_id))
            self._loading[key] = task
        # Cancelling one waiter must not cancel the shared load.
        return await asyncio.shield(task)

    async def _build(self, key: str, user_id: str | None) -> SavedJobsService:
        try:
            store = await BookmarkStore.load(self._storage, key=key)
        finally:
            self._loading.pop(key, None)

        fetcher = CollectionFetcher(self._lookup, max_concurrency=self._max_concurrency)
        service = SavedJobsService(store=store, fetcher=fetcher, user_id=user_id)
        self._services[key] = service
        logger.info("Initialized saved jobs for %s (%d saved)", key, len(store))

        while len(self._services) > self._max_users:
            evicted_key, evicted = self._services.popitem(last=False)
            evicted.close()
            logger.debug("Evicted saved jobs for %s", evicted_key)
        return service

    def close(self) -> None:
        for task in self._loading.values():
            task.cancel()
        self._loading.clear()
        for service in self._services.values():
            service.close()
        self._services.clear()


__all__ = ["SavedJobsRegistry", "SavedJobsService"]
