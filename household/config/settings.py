"""
Configuration Management for Household Ledger

Each concern reads its own environment prefix through pydantic-settings.

DESIGN DECISION: Only the Google Sheets block has required values.
Without them the ledger still runs against the in-memory store, so
a missing sheet is a warning at startup, never a crash.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncSettings(BaseSettings):
    """Reconnect behaviour of synchronized collections."""

    model_config = SettingsConfigDict(
        env_prefix="HOUSEHOLD_SYNC_",
        extra="ignore"
    )

    retry_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Delay before the first resubscribe attempt"
    )
    retry_backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Growth factor per consecutive failure (1 = fixed delay)"
    )
    retry_max_delay_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Ceiling for the resubscribe delay"
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Polling interval for stores without push notifications"
    )

    @model_validator(mode="after")
    def check_ceiling(self) -> "SyncSettings":
        """The ceiling can never be below the initial delay."""
        if self.retry_max_delay_seconds < self.retry_delay_seconds:
            raise ValueError(
                "retry_max_delay_seconds must be >= retry_delay_seconds"
            )
        return self


class CacheSettings(BaseSettings):
    """Local durable cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HOUSEHOLD_CACHE_",
        extra="ignore"
    )

    directory: str = Field(
        default=".household-cache",
        description="Directory holding one JSON file per cache key"
    )
    key_prefix: str = Field(
        default="household",
        min_length=1,
        description="Namespace prefix for every cache key"
    )

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after startup."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key not found at {v}; "
                "the ledger will stay offline until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """
    Household-wide settings: people, backups and audit history.

    Read from the environment and the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # The two fixed people of the household
    first_person_name: str = Field(
        default="Kevin",
        description="Display name of the first person"
    )
    second_person_name: str = Field(
        default="Angeles",
        description="Display name of the second person"
    )

    # Backups
    backup_directory: str = Field(
        default="backups",
        description="Where exported bundles are written"
    )
    audit_history_size: int = Field(
        default=200,
        ge=10,
        le=10000,
        description="How many audit events are kept in memory"
    )

    @property
    def person_names(self) -> dict[str, str]:
        """Display names keyed by stored person value."""
        return {
            "boyfriend": self.first_person_name,
            "girlfriend": self.second_person_name,
        }


class Settings(BaseSettings):
    """
    Entry point to every settings block.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Each block is read on access so one bad block does not hide the rest

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings.

    Tests build their own Settings() instead of clearing this cache.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check which settings blocks load.

    Maps each block name to whether it validated, plus a
    "<name>_error" entry with the message for each failing block.
    """
    results = {}

    settings = get_settings()

    for name in ("sync", "cache", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
