"""Error bodies returned by the saved-jobs API."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    VALIDATION_ERROR = "validation_error"
    STORAGE_ERROR = "storage_error"
    INTERNAL_ERROR = "internal_error"


class ErrorResponse(BaseModel):
    """Body shared by every non-2xx response.

    ``retry_after`` is only set for transient failures (mirrored in the
    ``Retry-After`` header); ``request_id`` matches ``X-Request-ID``.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_type": "storage_error",
                "message": "Saved jobs could not be persisted",
                "detail": "Saving or unsaving job 64f1c2 did not take effect. Please try again.",
                "status_code": 503,
                "timestamp": "2025-11-03T10:30:00Z",
                "request_id": "3f0c9a2e8d1b4d4e9a557c1f0f5e2b10",
                "path": "/saved-jobs/64f1c2/toggle",
                "retry_after": 2,
            }
        }
    )

    error_type: ErrorType
    message: str = Field(..., description="Short summary of the failure")
    detail: str | None = Field(None, description="What the client can do about it")
    status_code: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    request_id: str | None = None
    path: str | None = None
    retry_after: int | None = Field(None, ge=0, description="Seconds before retrying")


class ValidationErrorDetail(BaseModel):
    """One rejected request field, e.g. ``query.user_id``."""

    field: str
    message: str
    value: Any = None


class ValidationErrorResponse(ErrorResponse):
    error_type: ErrorType = ErrorType.VALIDATION_ERROR
    errors: list[ValidationErrorDetail] = Field(default_factory=list)
