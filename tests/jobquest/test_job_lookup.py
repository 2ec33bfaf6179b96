"""Tests for the httpx-backed job lookup adapter."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from jobquest.services.job_lookup import (
    FetchError,
    FetchErrorKind,
    HttpJobLookup,
    JobLookupNetworkError,
    JobNotFoundError,
)

BASE_URL = "http://jobs.test/api"


def _lookup(handler: Callable[[httpx.Request], httpx.Response]) -> HttpJobLookup:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpJobLookup(client, base_url=f"{BASE_URL}/")


@pytest.mark.asyncio
async def test_fetch_normalizes_document_store_identifier() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(
            200,
            json={
                "_id": "64f1c2",
                "title": "Backend Engineer",
                "location": "Lisbon",
                "jobType": "full-time",
                "company": {"name": "Acme", "logo": "acme.png"},
                "salary": {"min": 50000, "max": 70000, "currency": "EUR"},
                "createdAt": "2024-05-01T09:00:00Z",
                "applicationDeadline": "2024-06-01T00:00:00Z",
            },
        )

    job = await _lookup(handler).fetch_by_id("64f1c2")

    assert requested == [f"{BASE_URL}/jobs/64f1c2"]
    assert job.id == "64f1c2"
    assert job.job_type == "full-time"
    assert job.company == "Acme"
    assert job.company_logo == "acme.png"
    assert job.salary is not None and job.salary.currency == "EUR"
    assert job.posted_date is not None and job.posted_date.year == 2024
    assert job.deadline is not None and job.deadline.month == 6


@pytest.mark.asyncio
async def test_identifier_is_path_escaped() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.raw_path.decode())
        return httpx.Response(200, json={"id": "a/b", "title": "Odd id"})

    job = await _lookup(handler).fetch_by_id("a/b")

    assert requested == ["/api/jobs/a%2Fb"]
    assert job.id == "a/b"


@pytest.mark.asyncio
async def test_payload_id_mismatch_is_keyed_by_requested_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"_id": "other", "title": "Moved"})

    job = await _lookup(handler).fetch_by_id("wanted")

    assert job.id == "wanted"


@pytest.mark.asyncio
async def test_payload_without_identifier_adopts_requested_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"title": "Anonymous"})

    job = await _lookup(handler).fetch_by_id("j9")

    assert job.id == "j9"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "error_type", "kind"),
    [
        (404, JobNotFoundError, FetchErrorKind.NOT_FOUND),
        (500, JobLookupNetworkError, FetchErrorKind.NETWORK_ERROR),
        (503, JobLookupNetworkError, FetchErrorKind.NETWORK_ERROR),
        (400, FetchError, FetchErrorKind.UNKNOWN),
        (401, FetchError, FetchErrorKind.UNKNOWN),
    ],
)
async def test_http_status_maps_to_fetch_error(
    status_code: int, error_type: type[FetchError], kind: FetchErrorKind
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"message": "nope"})

    with pytest.raises(error_type) as excinfo:
        await _lookup(handler).fetch_by_id("j1")

    assert excinfo.value.kind is kind
    assert excinfo.value.job_id == "j1"


@pytest.mark.asyncio
async def test_transport_failure_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(JobLookupNetworkError):
        await _lookup(handler).fetch_by_id("j1")


@pytest.mark.asyncio
async def test_timeout_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(JobLookupNetworkError):
        await _lookup(handler).fetch_by_id("j1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"id": "j1"}),
    ],
)
async def test_unusable_payload_is_unknown_error(response: httpx.Response) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(FetchError) as excinfo:
        await _lookup(handler).fetch_by_id("j1")

    assert excinfo.value.kind is FetchErrorKind.UNKNOWN
