"""FastAPI dependency wiring for the saved-jobs services.

Keeping the factories here leaves the service modules free of web-layer
concerns; tests swap them out through ``app.dependency_overrides``.
"""

from __future__ import annotations

import asyncio

from fastapi import Depends, Query

from jobquest.services.job_lookup import build_job_lookup
from jobquest.services.saved_jobs_service import SavedJobsRegistry, SavedJobsService
from jobquest.settings import get_settings
from jobquest.storage import build_storage

_registry: SavedJobsRegistry | None = None
_registry_lock = asyncio.Lock()


async def get_saved_jobs_registry() -> SavedJobsRegistry:
    """Return the process-wide registry, creating it on first use."""

    global _registry
    async with _registry_lock:
        if _registry is None:
            settings = get_settings()
            _registry = SavedJobsRegistry(
                storage=await build_storage(settings),
                lookup=build_job_lookup(settings),
                key_prefix=settings.saved_jobs_key_prefix,
                max_concurrency=settings.lookup_concurrency_limit,
                max_users=settings.max_cached_users,
            )
        return _registry


async def get_saved_jobs_service(
    user_id: str | None = Query(
        default=None,
        min_length=1,
        description="Owner of the saved jobs; omit for the shared guest scope.",
    ),
    registry: SavedJobsRegistry = Depends(get_saved_jobs_registry),
) -> SavedJobsService:
    """Resolve the service bound to ``user_id``."""

    return await registry.for_user(user_id)


def reset_saved_jobs_registry() -> None:
    """Drop the cached registry (used at shutdown and by tests)."""

    global _registry
    if _registry is not None:
        _registry.close()
        _registry = None


__all__ = [
    "get_saved_jobs_registry",
    "get_saved_jobs_service",
    "reset_saved_jobs_registry",
]
