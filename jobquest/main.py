"""ASGI entry point for the JobQuest saved-jobs API.

Run locally with ``uvicorn jobquest.main:app --reload``.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from jobquest.api import saved_jobs
from jobquest.schemas.error import ErrorType
from jobquest.services.bookmarks import PersistenceError
from jobquest.services.dependencies import reset_saved_jobs_registry
from jobquest.services.job_lookup import close_http_client
from jobquest.settings import AppSettings, get_settings
from jobquest.storage import close_redis
from jobquest.utils.error_responses import (
    build_error_response,
    error_json_response,
    validation_details,
)
from jobquest.utils.request_context import get_request_id, request_id_scope

STORAGE_RETRY_AFTER_SECONDS = 2
_LOCAL_DEV_PORTS = (3000, 4173, 5173)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level_numeric,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _validate_environment(active_settings: AppSettings | None = None) -> None:
    """Log a warning block listing optional configuration left at its defaults."""

    warnings = (active_settings or get_settings()).optional_config_warnings()
    if not warnings:
        return

    logger.warning("Environment Configuration Warnings:")
    for warning in warnings:
        logger.warning("  - %s", warning)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _validate_environment()
    logger.info(
        "Saved-jobs API ready (storage=%s, jobs API=%s, lookup concurrency=%s)",
        settings.storage_backend,
        settings.normalized_jobs_api_base_url,
        settings.lookup_concurrency_limit or "unbounded",
    )
    try:
        yield
    finally:
        logger.info("Saved-jobs API shutting down")
        reset_saved_jobs_registry()
        await close_http_client()
        await close_redis()


def _allowed_origins(active_settings: AppSettings) -> list[str]:
    """Local dev servers first, then ``CORS_ALLOW_ORIGINS``, without duplicates."""

    candidates = [
        f"http://{host}:{port}"
        for host in ("localhost", "127.0.0.1")
        for port in _LOCAL_DEV_PORTS
    ]
    candidates.extend(active_settings.cors_allow_origins)
    return list(dict.fromkeys(origin.rstrip("/") for origin in candidates if origin))


async def _tag_request(request: Request, call_next):
    """Assign a UUID per request and echo it in ``X-Request-ID``."""
    with request_id_scope(uuid.uuid4().hex) as request_id:
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


async def _on_validation_error(request: Request, exc: RequestValidationError):
    details = validation_details(exc.errors())
    logger.warning(
        "Rejected request %s to %s with %d invalid field(s)",
        get_request_id(),
        request.url.path,
        len(details),
    )
    return error_json_response(
        build_error_response(
            error_type=ErrorType.VALIDATION_ERROR,
            message="Request validation failed",
            detail=f"{len(details)} validation error(s)",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            path=request.url.path,
            errors=details,
        )
    )


async def _on_persistence_error(request: Request, exc: PersistenceError):
    """Saved-set change that never reached durable storage; safe to retry."""
    logger.error(
        "Storage failure on request %s to %s: %s", get_request_id(), request.url.path, exc
    )
    if exc.job_id is not None:
        detail = f"Saving or unsaving job {exc.job_id} did not take effect. Please try again."
    else:
        detail = "The saved jobs change was not applied. Please try again."
    return error_json_response(
        build_error_response(
            error_type=ErrorType.STORAGE_ERROR,
            message=str(exc),
            detail=detail,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            path=request.url.path,
            retry_after=STORAGE_RETRY_AFTER_SECONDS,
        )
    )


async def _on_unhandled_error(request: Request, exc: Exception):
    logger.exception(
        "Unhandled %s on request %s to %s",
        type(exc).__name__,
        get_request_id(),
        request.url.path,
    )
    return error_json_response(
        build_error_response(
            error_type=ErrorType.INTERNAL_ERROR,
            message="Internal server error",
            detail=f"An unexpected error occurred: {type(exc).__name__}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            path=request.url.path,
        )
    )


def create_app(active_settings: AppSettings | None = None) -> FastAPI:
    """Assemble the FastAPI application with middleware, handlers and routes."""

    active_settings = active_settings or get_settings()
    application = FastAPI(
        title="JobQuest Saved Jobs API",
        version="0.1.0",
        description="Persists bookmarked jobs and resolves them into full job records.",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    origins = _allowed_origins(active_settings)
    logger.info("CORS origins: %s", ", ".join(origins))
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    application.middleware("http")(_tag_request)

    application.add_exception_handler(RequestValidationError, _on_validation_error)
    application.add_exception_handler(PersistenceError, _on_persistence_error)
    application.add_exception_handler(Exception, _on_unhandled_error)

    @application.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    application.include_router(saved_jobs.router, prefix="/saved-jobs", tags=["saved-jobs"])
    return application


app = create_app(settings)
