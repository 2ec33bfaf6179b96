"""Concurrent materialization of saved job identifiers into job records.

:class:`CollectionFetcher` fans one lookup per identifier out onto the event
loop and waits for *all* of them to settle. Failures are captured per
identifier so one missing job never hides its siblings.

Each call to :meth:`CollectionFetcher.materialize` takes the next epoch. Only
the call holding the latest epoch when its lookups settle may publish its
results; an older call finishing late is dropped, which keeps a slow response
for a previous bookmark set from overwriting fresher data.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from jobquest.schemas.job import Job
from jobquest.services.job_lookup import FetchError, JobLookup

logger = logging.getLogger(__name__)


class LookupStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class JobLookupResult:
    """Settled outcome for one identifier: a job or the error that prevented it."""

    job_id: str
    job: Job | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> LookupStatus:
        return LookupStatus.SUCCEEDED if self.ok else LookupStatus.FAILED


@dataclass(frozen=True)
class CollectionSnapshot:
    """Results most recently published by the fetcher."""

    epoch: int
    job_ids: tuple[str, ...] = ()
    results: tuple[JobLookupResult, ...] = field(default_factory=tuple)

    @property
    def jobs(self) -> list[Job]:
        return [result.job for result in self.results if result.job is not None]

    @property
    def failures(self) -> list[JobLookupResult]:
        return [result for result in self.results if not result.ok]


SnapshotListener = Callable[[CollectionSnapshot], None]


class CollectionFetcher:
    """Resolve identifier sets through a :class:`JobLookup` collaborator."""

    def __init__(self, lookup: JobLookup, *, max_concurrency: int | None = None) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be positive when provided")
        self._lookup = lookup
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self._epoch = 0
        self._settled_epoch = 0
        self._snapshot: CollectionSnapshot | None = None
        self._listeners: list[SnapshotListener] = []

    @property
    def epoch(self) -> int:
        """Epoch handed to the most recently issued call."""

        return self._epoch

    @property
    def pending(self) -> bool:
        """Whether the most recently issued call has not settled yet."""

        return self._settled_epoch != self._epoch

    @property
    def snapshot(self) -> CollectionSnapshot | None:
        """Visible results, or ``None`` before the first call or after invalidation."""

        return self._snapshot

    async def materialize(self, job_ids: Sequence[str]) -> list[JobLookupResult] | None:
        """Look up every identifier and return results in input order.

        Returns ``None`` when a newer call was issued before this one settled;
        its results are discarded and the visible snapshot is left alone.
        """

        self._epoch += 1
        epoch = self._epoch
        requested = tuple(job_ids)

        if requested:
            results = await asyncio.gather(*(self._settle(job_id) for job_id in requested))
        else:
            results = []

        if epoch != self._epoch:
            logger.debug(
                "Dropping superseded materialization (epoch %d, current %d)",
                epoch,
                self._epoch,
            )
            return None

        self._publish(
            CollectionSnapshot(epoch=epoch, job_ids=requested, results=tuple(results))
        )
        return list(results)

    def invalidate(self) -> None:
        """Discard visible results and neutralize any call still in flight."""

        self._epoch += 1
        self._settled_epoch = self._epoch
        self._snapshot = None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener`` for published snapshots; returns an unsubscriber."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _settle(self, job_id: str) -> JobLookupResult:
        try:
            if self._semaphore is None:
                job = await self._lookup.fetch_by_id(job_id)
            else:
                async with self._semaphore:
                    job = await self._lookup.fetch_by_id(job_id)
        except FetchError as exc:
            logger.info("Lookup for saved job %s failed (%s): %s", job_id, exc.kind.value, exc)
            return JobLookupResult(job_id=job_id, error=exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error looking up saved job %s", job_id)
            error = FetchError(job_id, str(exc) or type(exc).__name__)
            return JobLookupResult(job_id=job_id, error=error)
        return JobLookupResult(job_id=job_id, job=job)

    def _publish(self, snapshot: CollectionSnapshot) -> None:
        self._snapshot = snapshot
        self._settled_epoch = snapshot.epoch
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Collection listener %r failed", listener)


__all__ = [
    "CollectionFetcher",
    "CollectionSnapshot",
    "JobLookupResult",
    "LookupStatus",
    "SnapshotListener",
]
