"""Pydantic schemas that power the saved-jobs API surface."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from jobquest.schemas.job import Job


class SavedJobIds(BaseModel):
    """Ordered identifiers currently saved by a user."""

    user_id: str | None = Field(None, description="Owner scope; ``None`` for guests")
    total: int = Field(..., ge=0)
    job_ids: list[str] = Field(default_factory=list)


class SavedJobStatus(BaseModel):
    """Membership of a single job in the saved set."""

    job_id: str
    saved: bool


class LookupErrorDetail(BaseModel):
    """Reason a saved job could not be materialized."""

    kind: Literal["not_found", "network_error", "unknown"]
    message: str


class SavedJobItem(BaseModel):
    """One entry of a materialized collection, in saved order."""

    job_id: str
    status: Literal["succeeded", "failed"]
    job: Job | None = None
    error: LookupErrorDetail | None = None


class SavedJobCollection(BaseModel):
    """Saved jobs resolved into full records.

    ``loading`` is set when this request was superseded by a newer one that has
    not settled yet; ``items`` is then empty and the client should ask again.
    """

    user_id: str | None = None
    epoch: int = Field(..., ge=0, description="Materialization that produced the items")
    loading: bool = False
    total: int = Field(..., ge=0)
    failed: int = Field(0, ge=0)
    items: list[SavedJobItem] = Field(default_factory=list)


__all__ = [
    "LookupErrorDetail",
    "SavedJobCollection",
    "SavedJobIds",
    "SavedJobItem",
    "SavedJobStatus",
]
