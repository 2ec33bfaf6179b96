"""Tests for the per-user saved-jobs service and its registry."""

from __future__ import annotations

import asyncio
import json

import pytest

from jobquest.services.bookmarks import BookmarkStore, CollectionFetcher, PersistenceError
from jobquest.services.saved_jobs_service import SavedJobsRegistry, SavedJobsService
from jobquest.storage import saved_jobs_key
from tests.jobquest.support.fakes import (
    FakeJobLookup,
    FlakyStorage,
    drain_event_loop,
    network_failure,
)

PREFIX = "jobquest_saved_jobs"


async def _service(storage: FlakyStorage, lookup: FakeJobLookup) -> SavedJobsService:
    store = await BookmarkStore.load(storage, key=saved_jobs_key(None, prefix=PREFIX))
    return SavedJobsService(store=store, fetcher=CollectionFetcher(lookup))


@pytest.mark.asyncio
async def test_collection_reuses_snapshot_until_saved_set_changes(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    service = await _service(storage, lookup)
    await service.toggle("a")
    await service.toggle("b")

    first = await service.collection()
    again = await service.collection()

    assert [item.job_id for item in first.items] == ["a", "b"]
    assert again.epoch == first.epoch
    assert lookup.calls == ["a", "b"]

    await service.toggle("c")
    assert service.fetcher.snapshot is None

    updated = await service.collection()
    assert [item.job_id for item in updated.items] == ["a", "b", "c"]
    assert updated.epoch > first.epoch


@pytest.mark.asyncio
async def test_collection_reports_failures_and_retry_looks_them_up_again(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    lookup.failures["b"] = network_failure("b")
    service = await _service(storage, lookup)
    for job_id in ("a", "b", "c"):
        await service.toggle(job_id)

    collection = await service.collection()

    assert collection.total == 3
    assert collection.failed == 1
    failed = collection.items[1]
    assert failed.status == "failed"
    assert failed.job is None
    assert failed.error is not None and failed.error.kind == "network_error"
    assert collection.items[0].job is not None
    assert collection.items[2].job is not None

    del lookup.failures["b"]
    assert (await service.collection()).failed == 1

    retried = await service.collection(retry=True)
    assert retried.failed == 0
    assert lookup.calls.count("b") == 2


@pytest.mark.asyncio
async def test_superseded_collection_reports_loading(lookup: FakeJobLookup) -> None:
    """A toggle while lookups are in flight makes the older response stale."""

    storage = FlakyStorage({saved_jobs_key(None, prefix=PREFIX): json.dumps(["a"])})
    service = await _service(storage, lookup)
    gate = lookup.hold("a")

    pending = asyncio.create_task(service.collection())
    await drain_event_loop()
    await service.toggle("b")
    gate.set()

    stale = await pending
    assert stale.loading is True
    assert stale.items == []

    fresh = await service.collection()
    assert fresh.loading is False
    assert [item.job_id for item in fresh.items] == ["a", "b"]


@pytest.mark.asyncio
async def test_failed_toggle_keeps_the_cached_collection(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    service = await _service(storage, lookup)
    await service.toggle("a")
    await service.collection()
    snapshot = service.fetcher.snapshot

    storage.fail_writes = True
    with pytest.raises(PersistenceError):
        await service.toggle("b")

    assert service.fetcher.snapshot is snapshot
    assert service.saved_ids().job_ids == ["a"]
    assert service.status("b").saved is False


@pytest.mark.asyncio
async def test_closed_service_stops_listening(storage: FlakyStorage, lookup: FakeJobLookup) -> None:
    service = await _service(storage, lookup)
    await service.toggle("a")
    await service.collection()

    service.close()
    await service.store.toggle("b")

    assert service.fetcher.snapshot is not None


@pytest.mark.asyncio
async def test_registry_returns_one_service_per_user(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    registry = SavedJobsRegistry(storage=storage, lookup=lookup, key_prefix=PREFIX)

    first, second = await asyncio.gather(registry.for_user("u1"), registry.for_user("u1"))
    other = await registry.for_user("u2")
    guest = await registry.for_user(None)

    assert first is second
    assert other is not first
    assert guest.store.key == f"{PREFIX}_guest"

    await first.toggle("a")
    assert other.saved_ids().job_ids == []
    assert json.loads(await storage.get(f"{PREFIX}_u1")) == ["a"]


@pytest.mark.asyncio
async def test_registry_propagates_unreadable_storage(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    storage.fail_reads = True
    registry = SavedJobsRegistry(storage=storage, lookup=lookup, key_prefix=PREFIX)

    with pytest.raises(PersistenceError):
        await registry.for_user("u1")

    storage.fail_reads = False
    service = await registry.for_user("u1")
    assert service.saved_ids().total == 0


@pytest.mark.asyncio
async def test_registry_keeps_only_recently_used_users(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    registry = SavedJobsRegistry(storage=storage, lookup=lookup, key_prefix=PREFIX, max_users=2)

    first = await registry.for_user("u1")
    second = await registry.for_user("u2")
    await second.toggle("b")
    assert await registry.for_user("u1") is first

    for index in range(50):
        await registry.for_user(f"random-{index}")

    assert len(registry) == 2
    reloaded = await registry.for_user("u2")
    assert reloaded is not second
    assert reloaded.saved_ids().job_ids == ["b"]


@pytest.mark.asyncio
async def test_evicted_service_stops_listening(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    registry = SavedJobsRegistry(storage=storage, lookup=lookup, key_prefix=PREFIX, max_users=1)
    evicted = await registry.for_user("u1")
    await evicted.toggle("a")
    await evicted.collection()

    await registry.for_user("u2")
    await evicted.store.toggle("b")

    assert evicted.fetcher.snapshot is not None


def test_registry_rejects_non_positive_bound(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    with pytest.raises(ValueError):
        SavedJobsRegistry(storage=storage, lookup=lookup, max_users=0)


@pytest.mark.asyncio
async def test_slow_load_does_not_block_other_users(
    storage: FlakyStorage, lookup: FakeJobLookup
) -> None:
    registry = SavedJobsRegistry(storage=storage, lookup=lookup, key_prefix=PREFIX)
    slow_key = f"{PREFIX}_slow"
    gate = storage.hold_reads(slow_key)

    slow_first = asyncio.create_task(registry.for_user("slow"))
    slow_second = asyncio.create_task(registry.for_user("slow"))
    await drain_event_loop()

    fast = await asyncio.wait_for(registry.for_user("fast"), timeout=1)
    assert fast.store.key == f"{PREFIX}_fast"
    assert slow_first.done() is False

    gate.set()
    assert await slow_first is await slow_second
    assert storage.reads.count(slow_key) == 1
