"""Pydantic model for job records returned by the job board API.

Lookup payloads are not uniform: the document-store back end names the primary
key ``_id`` while the relational back end uses ``id``, companies arrive either
as a nested object or as a flat ``companyName``, and salary is sometimes free
text. Everything is normalized here so callers only ever see ``Job.id``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

_IDENTIFIER_FIELDS: tuple[str, ...] = ("id", "_id", "jobId")


def extract_job_identifier(payload: dict[str, Any]) -> str | None:
    """Return the first non-empty identifier found in ``payload``."""

    for field in _IDENTIFIER_FIELDS:
        value = payload.get(field)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


class SalaryRange(BaseModel):
    """Advertised compensation. Zero bounds mean the value was not disclosed."""

    min: float | None = Field(None, description="Lower bound of the range")
    max: float | None = Field(None, description="Upper bound of the range")
    currency: str = Field("USD", description="ISO currency code")
    period: str | None = Field(None, description="Pay period, e.g. ``yearly``")
    text: str | None = Field(
        None, description="Free-text salary when the posting has no numeric range"
    )

    @property
    def has_value(self) -> bool:
        if self.text and self.text.strip():
            return True
        return bool((self.min and self.min > 0) or (self.max and self.max > 0))


class Job(BaseModel):
    """Display record for a single job posting."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Canonical job identifier")
    title: str = Field(..., description="Job title")
    location: str | None = Field(None)
    job_type: str | None = Field(
        None,
        validation_alias=AliasChoices("job_type", "jobType", "type"),
        description="Employment type such as ``full-time`` or ``contract``",
    )
    salary: SalaryRange | None = Field(None)
    description: str | None = Field(None)
    posted_date: datetime | None = Field(
        None,
        validation_alias=AliasChoices("posted_date", "postedDate", "createdAt"),
    )
    deadline: datetime | None = Field(
        None,
        validation_alias=AliasChoices("deadline", "applicationDeadline"),
    )
    company: str | None = Field(None, description="Hiring company name")
    company_logo: str | None = Field(None)
    is_remote: bool = Field(
        False, validation_alias=AliasChoices("is_remote", "isRemote")
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        normalized = dict(data)
        identifier = extract_job_identifier(normalized)
        if identifier is not None:
            normalized["id"] = identifier

        company = normalized.get("company")
        if isinstance(company, dict):
            normalized["company"] = company.get("name") or normalized.get("companyName")
            normalized.setdefault("company_logo", company.get("logo"))
        elif not company and normalized.get("companyName"):
            normalized["company"] = normalized["companyName"]

        salary = normalized.get("salary")
        if isinstance(salary, str):
            normalized["salary"] = {"text": salary} if salary.strip() else None
        elif isinstance(salary, (int, float)) and not isinstance(salary, bool):
            normalized["salary"] = {"min": salary}

        # Empty date strings are common in hand-edited postings.
        for date_field in ("postedDate", "createdAt", "deadline", "applicationDeadline"):
            if normalized.get(date_field) == "":
                normalized[date_field] = None

        return normalized


__all__ = ["Job", "SalaryRange", "extract_job_identifier"]
