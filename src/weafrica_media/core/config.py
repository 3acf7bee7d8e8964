"""Application configuration using Pydantic BaseSettings."""

import logging
import os
import socket

import structlog
from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_worker_id() -> str:
    """Claim owner id for this process: ``<hostname>-<pid>``."""
    return f"{socket.gethostname()}-{os.getpid()}"


def normalize_database_url(url: str) -> str:
    """Point plain Postgres URLs at the async psycopg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Metadata store (Supabase Postgres)
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    uploads_table: str = Field(default="uploads", alias="SUPABASE_UPLOADS_TABLE")

    # Object storage (Supabase Storage)
    storage_url: str = Field(
        validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
    )
    storage_service_key: str = Field(alias="SUPABASE_SERVICE_ROLE_KEY")
    storage_bucket: str = Field(default="media", alias="SUPABASE_STORAGE_BUCKET")
    storage_timeout_seconds: float = Field(default=120.0, alias="STORAGE_TIMEOUT_SECONDS")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Upload processing worker
    max_batch_size: int = Field(default=3, ge=1, alias="UPLOAD_PROCESS_MAX_BATCH")
    poll_interval_seconds: float = Field(default=30, gt=0, alias="POLL_INTERVAL_SECONDS")
    claim_ttl_seconds: int = Field(default=3600, ge=1, alias="UPLOAD_CLAIM_TTL_SECONDS")
    scratch_root: str | None = Field(default=None, alias="UPLOAD_SCRATCH_DIR")
    worker_id: str = Field(default_factory=default_worker_id, alias="WORKER_ID")

    # Media tools
    ffmpeg_bin: str = Field(default="ffmpeg", alias="FFMPEG_BIN")
    ffprobe_bin: str = Field(default="ffprobe", alias="FFPROBE_BIN")
    transcode_timeout_seconds: float = Field(default=1800, ge=0, alias="TRANSCODE_TIMEOUT_SECONDS")
    probe_timeout_seconds: float = Field(default=60, ge=0, alias="PROBE_TIMEOUT_SECONDS")

    @field_validator("database_url")
    @classmethod
    def use_psycopg_driver(cls, value: str) -> str:
        return normalize_database_url(value)

    @field_validator("storage_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def transcode_timeout(self) -> float | None:
        """Transcode timeout in seconds, or None when disabled (0)."""
        return self.transcode_timeout_seconds or None

    @property
    def probe_timeout(self) -> float | None:
        """Probe timeout in seconds, or None when disabled (0)."""
        return self.probe_timeout_seconds or None

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Missing variables already fail field validation; this catches variables
        that are present but empty. Fails fast with one message listing every
        problem so the worker never touches a record with a broken setup.
        """
        missing = []

        if not self.database_url:
            missing.append("DATABASE_URL: Postgres connection string of the Supabase project")

        if not self.storage_url:
            missing.append(
                "SUPABASE_URL: Base URL of the Supabase project (https://<ref>.supabase.co)"
            )

        if not self.storage_service_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY: Service role key with storage access")

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe upload worker cannot start without these variables."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.app_env == "production":
        renderer = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
