"""Centralized configuration management for the JobQuest saved-jobs service."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Populate os.environ from a local .env before anything reads settings.
load_dotenv()

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_JOBS_API_BASE_URL = "http://localhost:5000/api"
DEFAULT_SAVED_JOBS_KEY_PREFIX = "jobquest_saved_jobs"
DEFAULT_LOOKUP_TIMEOUT_SECONDS = 10.0
DEFAULT_LOOKUP_MAX_CONCURRENCY = 8
DEFAULT_MAX_CACHED_USERS = 1024
DEFAULT_LOG_LEVEL = "INFO"

StorageBackendName = Literal["redis", "memory"]


class AppSettings(BaseSettings):
    """Environment-driven settings for storage, job lookups and the HTTP layer.

    Values are read from the process environment (and ``.env``) using the
    upper-case aliases below; keyword arguments may use either the alias or
    the field name. Fields the deployment never set are tracked through
    ``model_fields_set`` so start-up can warn about silent defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    storage_backend: StorageBackendName = Field(
        default="redis",
        alias="STORAGE_BACKEND",
        description="``redis`` for durable sets, ``memory`` for development and tests.",
    )
    redis_url: str = Field(default=DEFAULT_REDIS_URL, alias="REDIS_URL")
    saved_jobs_key_prefix: str = Field(
        default=DEFAULT_SAVED_JOBS_KEY_PREFIX,
        alias="SAVED_JOBS_KEY_PREFIX",
        min_length=1,
        description="Per-user keys are ``<prefix>_<user id>`` or ``<prefix>_guest``.",
    )
    jobs_api_base_url: str = Field(
        default=DEFAULT_JOBS_API_BASE_URL,
        alias="JOBS_API_BASE_URL",
        description="Job board API root; lookups call ``{base}/jobs/{id}``.",
    )
    lookup_timeout_seconds: float = Field(
        default=DEFAULT_LOOKUP_TIMEOUT_SECONDS, alias="LOOKUP_TIMEOUT_SECONDS", gt=0
    )
    lookup_max_concurrency: int = Field(
        default=DEFAULT_LOOKUP_MAX_CONCURRENCY,
        alias="LOOKUP_MAX_CONCURRENCY",
        ge=0,
        description="Simultaneous lookups per materialization; ``0`` means unbounded.",
    )
    max_cached_users: int = Field(
        default=DEFAULT_MAX_CACHED_USERS,
        alias="SAVED_JOBS_MAX_CACHED_USERS",
        ge=1,
        description="Users whose saved jobs are kept in memory; older ones are reloaded.",
    )
    cors_allow_origins_raw: str | None = Field(
        default=None,
        alias="CORS_ALLOW_ORIGINS",
        description="Comma-separated origins allowed in addition to local dev servers.",
    )
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, alias="LOG_LEVEL")

    @property
    def cors_allow_origins(self) -> list[str]:
        raw = self.cors_allow_origins_raw or ""
        stripped = (origin.strip().rstrip("/") for origin in raw.split(","))
        return [origin for origin in stripped if origin]

    @property
    def normalized_jobs_api_base_url(self) -> str:
        return self.jobs_api_base_url.strip().rstrip("/")

    @property
    def lookup_concurrency_limit(self) -> int | None:
        """Concurrency bound for :class:`CollectionFetcher`, ``None`` when disabled."""

        return self.lookup_max_concurrency or None

    @property
    def log_level_numeric(self) -> int:
        level = logging.getLevelName(self.log_level.strip().upper())
        return level if isinstance(level, int) else logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Describe optional settings the deployment left at their defaults."""

        explicit = self.model_fields_set
        warnings: list[str] = []

        if self.storage_backend == "memory":
            warnings.append("STORAGE_BACKEND=memory - saved jobs are lost when the process exits")
        elif "redis_url" not in explicit:
            warnings.append(
                f"REDIS_URL is not set - saved jobs are stored in {DEFAULT_REDIS_URL}"
            )

        if "jobs_api_base_url" not in explicit:
            warnings.append(
                f"JOBS_API_BASE_URL is not set - job lookups target {DEFAULT_JOBS_API_BASE_URL}"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_JOBS_API_BASE_URL",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_LOOKUP_MAX_CONCURRENCY",
    "DEFAULT_LOOKUP_TIMEOUT_SECONDS",
    "DEFAULT_MAX_CACHED_USERS",
    "DEFAULT_REDIS_URL",
    "DEFAULT_SAVED_JOBS_KEY_PREFIX",
    "StorageBackendName",
    "get_settings",
]
