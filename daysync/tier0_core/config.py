"""
daysync.tier0_core.config
──────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; invalid values raise at
construction time, not at runtime.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DEFAULT_DATE_CACHE_PREFIXES = ["habit-completions-", "statistics-", "mood-entries-"]


class TimeSyncConfig(BaseSettings):
    """
    Typed time sync configuration.
    Env vars are prefixed with DAYSYNC_ unless noted otherwise.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ───────────────────────────────────────────────────────────
    environment: str = Field(default="development", alias="APP_ENV")

    # ── Time authority ────────────────────────────────────────────────────────
    api_base_url: str = Field(
        default="http://localhost:8000/api", alias="DAYSYNC_API_BASE_URL"
    )
    current_time_path: str = Field(default="/time/current", alias="DAYSYNC_CURRENT_TIME_PATH")
    mock_time_path: str = Field(default="/time/mock", alias="DAYSYNC_MOCK_TIME_PATH")

    # ── Sync cadence ──────────────────────────────────────────────────────────
    sync_interval_seconds: float = Field(default=30 * 60, alias="DAYSYNC_SYNC_INTERVAL_SECONDS")
    sync_timeout_seconds: float = Field(default=10.0, alias="DAYSYNC_SYNC_TIMEOUT_SECONDS")
    freshness_seconds: float = Field(default=5 * 60, alias="DAYSYNC_FRESHNESS_SECONDS")
    max_sync_errors: int = Field(default=3, alias="DAYSYNC_MAX_SYNC_ERRORS")

    # ── Mock override ─────────────────────────────────────────────────────────
    # None means "enabled unless production"
    mock_override_enabled: bool | None = Field(
        default=None, alias="DAYSYNC_MOCK_OVERRIDE_ENABLED"
    )

    # ── Local fallback ────────────────────────────────────────────────────────
    local_timezone: str | None = Field(default=None, alias="DAYSYNC_LOCAL_TIMEZONE")
    date_cache_prefixes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(_DEFAULT_DATE_CACHE_PREFIXES),
        alias="DAYSYNC_DATE_CACHE_PREFIXES",
    )

    # ── Connectivity ──────────────────────────────────────────────────────────
    connectivity_probe_url: str | None = Field(
        default=None, alias="DAYSYNC_CONNECTIVITY_PROBE_URL"
    )
    connectivity_probe_interval_seconds: float = Field(
        default=5.0, alias="DAYSYNC_CONNECTIVITY_PROBE_INTERVAL_SECONDS"
    )

    # ── Auxiliary endpoints ───────────────────────────────────────────────────
    aux_retry_attempts: int = Field(default=2, alias="DAYSYNC_AUX_RETRY_ATTEMPTS")

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator(
        "sync_interval_seconds",
        "sync_timeout_seconds",
        "freshness_seconds",
        "connectivity_probe_interval_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"duration must be positive, got {v!r}")
        return v

    @field_validator("max_sync_errors", "aux_retry_attempts")
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v!r}")
        return v

    @field_validator("date_cache_prefixes", mode="before")
    @classmethod
    def split_prefixes(cls, v: object) -> object:
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def mock_override_allowed(self) -> bool:
        if self.mock_override_enabled is None:
            return not self.is_production
        return self.mock_override_enabled


@lru_cache(maxsize=1)
def get_config() -> TimeSyncConfig:
    """
    Return the singleton config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return TimeSyncConfig()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()
