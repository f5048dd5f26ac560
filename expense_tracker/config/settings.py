"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The only external dependency is the Supabase project; everything else
(timeouts, storage keys, retry policy) has a working default.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Supabase project configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Base URL of the Supabase project"
    )
    anon_key: str = Field(
        ...,
        description="Public anon key of the Supabase project"
    )
    client_info: str = Field(
        default="expense-tracker",
        description="Value sent in the X-Client-Info header"
    )
    request_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Per-request HTTP timeout"
    )

    @field_validator('url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoint paths are joined with a leading slash."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Supabase URL must be http(s): {v}")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local logs"
    )

    # Local storage (browser localStorage equivalent)
    local_storage_path: str = Field(
        default=".expense-tracker/local_storage.json",
        description="JSON file backing the local key-value storage"
    )
    auth_storage_key: str = Field(
        default="expense-tracker-auth",
        description="Local storage key holding the session blob"
    )
    pending_actions_key: str = Field(
        default="pendingActions",
        description="Local storage key holding the offline queue"
    )

    # Session lifecycle
    inactivity_timeout_minutes: int = Field(
        default=30,
        ge=1,
        description="Sign out after this many minutes without activity"
    )
    refresh_margin_minutes: int = Field(
        default=5,
        ge=0,
        description="Refresh the session this long before the token expires"
    )
    remember_me_days: int = Field(
        default=30,
        ge=1,
        description="Lifetime of a persisted session when 'remember me' is set"
    )
    default_session_days: int = Field(
        default=1,
        ge=1,
        description="Lifetime of a persisted session otherwise"
    )

    # Network retry
    fetch_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per HTTP request before giving up"
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="First backoff delay; doubles on each retry"
    )
    ip_lookup_url: Optional[str] = Field(
        default="https://api.ipify.org?format=json",
        description="Service used to attach the client IP to auth logs (empty disables)"
    )

    # Offline queue
    pending_action_max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Drop a queued action after this many failed replays (unset = retry forever)"
    )

    # Presentation
    rows_per_page: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Rows shown per page of the expense table"
    )
    chart_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Number of months in the monthly spending chart"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def local_storage_file(self) -> Path:
        """Local storage path as a Path."""
        return Path(self.local_storage_path).expanduser()

    @property
    def inactivity_timeout(self) -> timedelta:
        return timedelta(minutes=self.inactivity_timeout_minutes)

    @property
    def refresh_margin(self) -> timedelta:
        return timedelta(minutes=self.refresh_margin_minutes)

    @property
    def remember_me_lifetime(self) -> timedelta:
        return timedelta(days=self.remember_me_days)

    @property
    def default_session_lifetime(self) -> timedelta:
        return timedelta(days=self.default_session_days)


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Loaded lazily so the app settings work without a Supabase project

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus an
    "<name>_error" entry for each failure. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.supabase
        results["supabase"] = True
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
