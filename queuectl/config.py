"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from queuectl.constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_JOB_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///queuectl.db"
    database_echo: bool = False
    database_auto_create: bool = True  # create tables on startup (SQLite, local use)

    # Worker Configuration
    worker_poll_interval_seconds: float = 1.0
    worker_heartbeat_interval_seconds: float = 5.0
    worker_stop_poll_interval_seconds: float = 1.0
    job_timeout_seconds: float = DEFAULT_JOB_TIMEOUT_SECONDS

    # Queue defaults, used until overridden through `queuectl config set`
    default_max_retries: int = DEFAULT_MAX_RETRIES
    default_backoff_base: int = DEFAULT_BACKOFF_BASE

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
