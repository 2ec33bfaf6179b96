"""Helpers that turn failures into structured JSON error responses.

Exception handlers only describe what went wrong; the request id, timestamp
and ``Retry-After`` header are filled in here so every error body looks the
same to clients.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from fastapi.responses import JSONResponse

from jobquest.schemas.error import (
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from jobquest.utils.request_context import get_request_id

__all__ = [
    "build_error_response",
    "error_json_response",
    "validation_details",
]


def _now() -> datetime:
    """Current UTC time; monkeypatched by tests that need stable output."""

    return datetime.now(UTC)


def validation_details(raw_errors: Sequence[dict]) -> list[ValidationErrorDetail]:
    """Flatten FastAPI/pydantic error dicts into :class:`ValidationErrorDetail`."""

    return [
        ValidationErrorDetail(
            field=".".join(str(part) for part in error.get("loc", ())),
            message=error.get("msg", ""),
            value=error.get("input"),
        )
        for error in raw_errors
    ]


def build_error_response(
    *,
    error_type: ErrorType,
    message: str,
    status_code: int,
    path: str,
    detail: str | None = None,
    retry_after: int | None = None,
    errors: Sequence[ValidationErrorDetail] | None = None,
) -> ErrorResponse:
    """Construct an error body stamped with the active request id.

    Passing ``errors`` yields a :class:`ValidationErrorResponse`.
    """

    fields = {
        "error_type": error_type,
        "message": message,
        "detail": detail,
        "status_code": status_code,
        "timestamp": _now(),
        "request_id": get_request_id(),
        "path": path,
        "retry_after": retry_after,
    }
    if errors is not None:
        return ValidationErrorResponse(**fields, errors=list(errors))
    return ErrorResponse(**fields)


def error_json_response(error: ErrorResponse) -> JSONResponse:
    headers = None
    if error.retry_after is not None:
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(
        status_code=error.status_code,
        content=error.model_dump(mode="json"),
        headers=headers,
    )
