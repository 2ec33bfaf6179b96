"""Pydantic schemas for API responses."""

from jobquest.schemas.job import Job, SalaryRange  # noqa: F401
from jobquest.schemas.saved_jobs import (  # noqa: F401
    LookupErrorDetail,
    SavedJobCollection,
    SavedJobIds,
    SavedJobItem,
    SavedJobStatus,
)
