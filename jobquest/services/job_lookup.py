"""Entity-lookup collaborator resolving a job identifier into a :class:`Job`.

The fetcher only relies on :class:`JobLookup`; :class:`HttpJobLookup` is the
production adapter over the job board's ``GET /jobs/{id}`` endpoint. Every
failure is reported as a :class:`FetchError` subclass so callers can attach it
to the affected identifier instead of aborting the whole batch.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from jobquest.schemas.job import Job, extract_job_identifier
from jobquest.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "JobQuest-SavedJobs/1.0",
}

_shared_client: httpx.AsyncClient | None = None


class FetchErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class FetchError(Exception):
    """A single job could not be materialized."""

    kind: FetchErrorKind = FetchErrorKind.UNKNOWN

    def __init__(self, job_id: str, message: str) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(job_id={self.job_id!r}, kind={self.kind.value!r})"


class JobNotFoundError(FetchError):
    """The job board has no job with the requested identifier."""

    kind = FetchErrorKind.NOT_FOUND


class JobLookupNetworkError(FetchError):
    """The job board could not be reached or failed server-side."""

    kind = FetchErrorKind.NETWORK_ERROR


class JobLookup(Protocol):
    """Resolve one identifier into a job record."""

    async def fetch_by_id(self, job_id: str) -> Job:
        """Return the job or raise :class:`FetchError`."""


class HttpJobLookup:
    """Fetch jobs from the job board REST API with ``httpx``."""

    def __init__(self, client: httpx.AsyncClient, *, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    def job_url(self, job_id: str) -> str:
        return f"{self._base_url}/jobs/{quote(job_id, safe='')}"

    async def fetch_by_id(self, job_id: str) -> Job:
        url = self.job_url(job_id)
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise JobLookupNetworkError(job_id, f"Timed out fetching job: {exc}") from exc
        except httpx.TransportError as exc:
            raise JobLookupNetworkError(job_id, f"Unable to reach job API: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise JobNotFoundError(job_id, "Job not found")
        if response.status_code >= 500:
            raise JobLookupNetworkError(
                job_id, f"Job API returned HTTP {response.status_code}"
            )
        if not response.is_success:
            raise FetchError(job_id, f"Job API returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(job_id, "Job API returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise FetchError(job_id, "Job API returned an unexpected payload")

        return normalize_job_payload(job_id, payload)


def normalize_job_payload(job_id: str, payload: dict) -> Job:
    """Validate ``payload`` into a :class:`Job` keyed by ``job_id``.

    The requested identifier is authoritative: a payload without an id adopts
    it, and a payload reporting a different id is re-keyed with a warning.
    """

    reported = extract_job_identifier(payload)
    if reported is None:
        payload = {**payload, "id": job_id}
    elif reported != job_id:
        logger.warning(
            "Job API answered lookup for %s with id %s; keeping requested id",
            job_id,
            reported,
        )
        payload = {key: value for key, value in payload.items() if key not in ("_id", "jobId")}
        payload["id"] = job_id

    try:
        return Job.model_validate(payload)
    except ValidationError as exc:
        raise FetchError(
            job_id, f"Job payload failed validation: {exc.error_count()} error(s)"
        ) from exc


def get_http_client(settings: AppSettings | None = None) -> httpx.AsyncClient:
    """Return the process-wide ``httpx`` client used for job lookups."""

    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        active_settings = settings or get_settings()
        _shared_client = httpx.AsyncClient(
            timeout=active_settings.lookup_timeout_seconds,
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )
    return _shared_client


async def close_http_client() -> None:
    global _shared_client
    if _shared_client is not None:
        await _shared_client.aclose()
        _shared_client = None


def build_job_lookup(settings: AppSettings | None = None) -> HttpJobLookup:
    active_settings = settings or get_settings()
    return HttpJobLookup(
        get_http_client(active_settings),
        base_url=active_settings.normalized_jobs_api_base_url,
    )


__all__ = [
    "FetchError",
    "FetchErrorKind",
    "HttpJobLookup",
    "JobLookup",
    "JobLookupNetworkError",
    "JobNotFoundError",
    "build_job_lookup",
    "close_http_client",
    "get_http_client",
    "normalize_job_payload",
]
