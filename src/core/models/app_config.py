"""Pydantic models for configuration validation."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class LogLevel(StrEnum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class LogLevelsConfig(BaseModel):
    """Log levels per output target."""

    console: LogLevel = LogLevel.INFO
    main_file: LogLevel = LogLevel.INFO

    @field_validator("console", "main_file", mode="before")
    @classmethod
    def _upper(cls, value: object) -> object:
        """Accept lowercase level names from YAML."""
        return value.upper() if isinstance(value, str) else value


class LoggingConfig(BaseModel):
    """Logging configuration."""

    max_runs: int = Field(default=3, ge=0)
    main_log_file: str = "main/main.log"
    levels: LogLevelsConfig = Field(default_factory=LogLevelsConfig)


class FetchRetryConfig(BaseModel):
    """Retry policy for individual content fetches during warming.

    The default of zero retries keeps warming single-attempt: a failed fetch is
    logged and the batch moves on.
    """

    max_retries: int = Field(default=0, ge=0)
    base_delay_seconds: float = Field(default=0.5, ge=0)
    max_delay_seconds: float = Field(default=8.0, ge=0)
    jitter_range: float = Field(default=0.1, ge=0, le=1)


class CachingConfig(BaseModel):
    """Offline content cache settings."""

    cache_dir: str = "cache/content"
    scratch_dir: str = "cache/handles"
    max_cache_bytes: int = Field(default=50 * 1024 * 1024, ge=1)
    max_entries: int = Field(default=500, ge=1)
    entry_max_age_seconds: int = Field(default=24 * 60 * 60, ge=0)
    warm_concurrency: int = Field(default=3, ge=1)
    preload_ahead: int = Field(default=3, ge=0)
    preload_behind: int = Field(default=1, ge=0)
    fetch_retry: FetchRetryConfig = Field(default_factory=FetchRetryConfig)


class ContentServiceConfig(BaseModel):
    """HTTP content service settings."""

    base_url: str = "http://localhost:3000"
    timeout_seconds: float = Field(default=30.0, gt=0)
    auth_token: str | None = None

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        return value.rstrip("/")

    @field_validator("auth_token", mode="before")
    @classmethod
    def _empty_token_is_none(cls, value: object) -> object:
        """Treat unresolved or blank tokens as absent."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PerformanceConfig(BaseModel):
    """Live performance navigation settings."""

    latency_budget_ms: float = Field(default=100.0, gt=0)


class SetlistsConfig(BaseModel):
    """Setlist position store settings."""

    database_path: str = "data/setlists.db"


class AppConfig(BaseModel):
    """Main application configuration model."""

    logs_base_dir: str = "logs"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    content_service: ContentServiceConfig = Field(default_factory=ContentServiceConfig)
    caching: CachingConfig = Field(default_factory=CachingConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    setlists: SetlistsConfig = Field(default_factory=SetlistsConfig)
