"""
Runtime configuration helpers for the moderation backend.

Loads DATABASE_URL, identity settings and the rate-limit policy from the
environment and the .env file located in the project root.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class RateLimitPolicy(NamedTuple):
    max_attempts: int
    window: timedelta


class Settings(BaseSettings):
    # Required field, must come from .env
    database_url: str = Field(..., alias="DATABASE_URL")

    # Optional fields
    app_name: str = Field(default="Catchlog Trust & Safety", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")
    sqlite_busy_timeout_seconds: float = Field(default=30.0, alias="SQLITE_BUSY_TIMEOUT_SECONDS")

    # Startup migrations; unset means "only for non-SQLite databases"
    auto_migrate: bool | None = Field(default=None, alias="AUTO_MIGRATE")
    disable_auto_migrations: bool = Field(default=False, alias="DISABLE_AUTO_MIGRATIONS")

    jwt_secret_key: str | None = Field(default=None, alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=1440, alias="JWT_EXPIRES_MINUTES")

    # Throttled write actions
    rate_limit_comment_max: int = Field(default=30, alias="RATE_LIMIT_COMMENT_MAX")
    rate_limit_comment_window_minutes: int = Field(default=60, alias="RATE_LIMIT_COMMENT_WINDOW_MINUTES")
    rate_limit_catch_max: int = Field(default=10, alias="RATE_LIMIT_CATCH_MAX")
    rate_limit_catch_window_minutes: int = Field(default=60, alias="RATE_LIMIT_CATCH_WINDOW_MINUTES")
    rate_limit_rating_max: int = Field(default=60, alias="RATE_LIMIT_RATING_MAX")
    rate_limit_rating_window_minutes: int = Field(default=60, alias="RATE_LIMIT_RATING_WINDOW_MINUTES")
    rate_limit_reaction_max: int = Field(default=120, alias="RATE_LIMIT_REACTION_MAX")
    rate_limit_reaction_window_minutes: int = Field(default=60, alias="RATE_LIMIT_REACTION_WINDOW_MINUTES")
    rate_limit_follow_max: int = Field(default=50, alias="RATE_LIMIT_FOLLOW_MAX")
    rate_limit_follow_window_minutes: int = Field(default=60, alias="RATE_LIMIT_FOLLOW_WINDOW_MINUTES")
    rate_limit_report_max: int = Field(default=20, alias="RATE_LIMIT_REPORT_MAX")
    rate_limit_report_window_minutes: int = Field(default=60, alias="RATE_LIMIT_REPORT_WINDOW_MINUTES")
    rate_limit_sweep_minutes: int = Field(default=15, alias="RATE_LIMIT_SWEEP_MINUTES")
    disable_sweep: bool = Field(default=False, alias="DISABLE_SWEEP")

    # Moderation
    moderation_dedupe_seconds: int = Field(default=30, alias="MODERATION_DEDUPE_SECONDS")
    audit_page_size: int = Field(default=20, alias="AUDIT_PAGE_SIZE")
    audit_export_max_rows: int = Field(default=5000, alias="AUDIT_EXPORT_MAX_ROWS")
    reports_page_size: int = Field(default=20, alias="REPORTS_PAGE_SIZE")
    context_history_limit: int = Field(default=20, alias="CONTEXT_HISTORY_LIMIT")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def rate_limit_policy(self, action: str) -> RateLimitPolicy:
        """Return the configured limit for a throttled action."""

        try:
            max_attempts = getattr(self, f"rate_limit_{action}_max")
            window_minutes = getattr(self, f"rate_limit_{action}_window_minutes")
        except AttributeError as exc:
            raise KeyError(f"No rate limit configured for action {action!r}") from exc
        return RateLimitPolicy(max_attempts=int(max_attempts), window=timedelta(minutes=int(window_minutes)))


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["RateLimitPolicy", "Settings", "get_settings"]
