"""FastAPI router exposing the saved-jobs store and its materialized collection."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query

from jobquest.schemas.saved_jobs import SavedJobCollection, SavedJobIds, SavedJobStatus
from jobquest.services.dependencies import get_saved_jobs_service
from jobquest.services.saved_jobs_service import SavedJobsService

router = APIRouter()

_JOB_ID_PATH = Path(..., min_length=1, max_length=128, description="Job identifier")


@router.get("", response_model=SavedJobIds)
async def list_saved_jobs(
    service: SavedJobsService = Depends(get_saved_jobs_service),
) -> SavedJobIds:
    """Return the saved job identifiers in the order they were saved."""

    return service.saved_ids()


@router.get("/collection", response_model=SavedJobCollection)
async def get_saved_job_collection(
    retry: bool = Query(
        False, description="Look up every saved job again, including earlier failures."
    ),
    service: SavedJobsService = Depends(get_saved_jobs_service),
) -> SavedJobCollection:
    """Resolve saved jobs into full records; failed lookups are reported per item."""

    return await service.collection(retry=retry)


@router.post("/refresh", response_model=SavedJobIds)
async def refresh_saved_jobs(
    service: SavedJobsService = Depends(get_saved_jobs_service),
) -> SavedJobIds:
    """Reload the saved set from durable storage."""

    return await service.refresh()


@router.get("/{job_id}", response_model=SavedJobStatus)
async def get_saved_job_status(
    job_id: str = _JOB_ID_PATH,
    service: SavedJobsService = Depends(get_saved_jobs_service),
) -> SavedJobStatus:
    """Report whether ``job_id`` is currently saved."""

    return service.status(job_id)


@router.post("/{job_id}/toggle", response_model=SavedJobStatus)
async def toggle_saved_job(
    job_id: str = _JOB_ID_PATH,
    service: SavedJobsService = Depends(get_saved_jobs_service),
) -> SavedJobStatus:
    """Save or unsave ``job_id`` and return its new state.

    A storage failure surfaces as HTTP 503 through the application's
    ``PersistenceError`` handler and leaves the saved set unchanged.
    """

    return await service.toggle(job_id)
