"""Shared fixtures for saved-jobs tests."""

from __future__ import annotations

import pytest

from tests.jobquest.support.fakes import FakeJobLookup, FlakyStorage, make_job


@pytest.fixture
def storage() -> FlakyStorage:
    """Fresh in-memory storage whose failures can be toggled per test."""

    return FlakyStorage()


@pytest.fixture
def lookup() -> FakeJobLookup:
    """Lookup double that knows a handful of jobs."""

    return FakeJobLookup(jobs={job_id: make_job(job_id) for job_id in ("a", "b", "c", "x", "y")})
