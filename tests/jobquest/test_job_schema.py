"""Normalization rules applied to job payloads from both API back ends."""

from __future__ import annotations

import pytest

from jobquest.schemas.job import Job, SalaryRange


def test_relational_payload_with_flat_company_name() -> None:
    job = Job.model_validate(
        {
            "id": "3b0f",
            "title": "Data Analyst",
            "companyName": "Globex",
            "company": None,
            "isRemote": True,
            "type": "contract",
        }
    )

    assert job.id == "3b0f"
    assert job.company == "Globex"
    assert job.is_remote is True
    assert job.job_type == "contract"


def test_nested_company_without_name_falls_back_to_company_name() -> None:
    job = Job.model_validate(
        {"_id": "1", "title": "QA", "company": {"logo": "x.png"}, "companyName": "Initech"}
    )

    assert job.company == "Initech"
    assert job.company_logo == "x.png"


def test_numeric_identifier_is_stringified() -> None:
    job = Job.model_validate({"id": 42, "title": "Ops"})

    assert job.id == "42"


def test_free_text_salary_is_kept() -> None:
    job = Job.model_validate({"id": "s1", "title": "Chef", "salary": "Competitive"})

    assert job.salary == SalaryRange(text="Competitive")
    assert job.salary.has_value is True


@pytest.mark.parametrize(
    ("salary", "expected"),
    [
        ({"min": 0, "max": 0, "currency": "USD"}, False),
        ({"min": 40000}, True),
        ({"max": 90000}, True),
        ({}, False),
    ],
)
def test_salary_has_value_ignores_zero_bounds(salary: dict, expected: bool) -> None:
    assert SalaryRange.model_validate(salary).has_value is expected


def test_blank_dates_and_salary_are_treated_as_missing() -> None:
    job = Job.model_validate(
        {"id": "d1", "title": "Designer", "postedDate": "", "deadline": "", "salary": "  "}
    )

    assert job.posted_date is None
    assert job.deadline is None
    assert job.salary is None


def test_serialization_uses_canonical_field_names() -> None:
    job = Job.model_validate({"_id": "z", "title": "SRE", "jobType": "full-time"})

    dumped = job.model_dump(mode="json")

    assert dumped["id"] == "z"
    assert dumped["job_type"] == "full-time"
    assert "_id" not in dumped
