"""
Configuration Management for the Trip Budget Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist (the remote
snapshot store, the local cache file) and ensures every knob is validated
at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteStoreSettings(BaseSettings):
    """HTTP snapshot endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REMOTE_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    endpoint_url: Optional[str] = Field(
        default=None,
        description="URL of the endpoint that reads/writes the account JSON blob"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout"
    )
    fetch_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a load is attempted on connection errors"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets snapshot store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    accounts_sheet_name: str = Field(
        default="Accounts",
        description="Name of the sheet holding one row per account key"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class LocalCacheSettings(BaseSettings):
    """Local key/value cache (offline rates, last selected trip)."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default=".tripbudget/cache.json",
        description="JSON file holding the cached key/value pairs"
    )
    rates_key: str = Field(
        default="vsc_exchange_rates",
        description="Key of the cached exchange rate table"
    )
    active_trip_key: str = Field(
        default="vsc_activeTripId",
        description="Key of the last selected trip id"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_backend: str = Field(
        default="http",
        pattern="^(http|google_sheets|memory)$",
        description="Which remote snapshot store to use"
    )

    # Currency handling
    pivot_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency every rate in the table is expressed against"
    )
    rate_refresh_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Latency of the simulated rate refresh"
    )

    # Categories and budgets
    fallback_category_id: str = Field(
        default="cat-8",
        description="Category that absorbs expenses of a deleted category"
    )
    budget_warning_pct: float = Field(
        default=75.0,
        gt=0.0,
        lt=100.0,
        description="Category budget usage at which status becomes 'warning'"
    )

    # Day bucketing for trends
    reporting_timezone: str = Field(
        default="",
        description="IANA zone used to bucket timestamps into days; empty = host local zone"
    )

    @field_validator('reporting_timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v:
            try:
                ZoneInfo(v)
            except ZoneInfoNotFoundError:
                raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def reporting_tz(self) -> Optional[ZoneInfo]:
        """Reporting zone, or None for the host's local zone."""
        return ZoneInfo(self.reporting_timezone) if self.reporting_timezone else None


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

    # Sub-settings are loaded lazily so the Sheets credentials are only
    # required when that backend is selected.

    @property
    def remote_store(self) -> RemoteStoreSettings:
        return RemoteStoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def local_cache(self) -> LocalCacheSettings:
        return LocalCacheSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "remote_store": lambda: settings.remote_store,
        "google_sheets": lambda: settings.google_sheets,
        "local_cache": lambda: settings.local_cache,
        "app": lambda: settings.app,
    }
    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
