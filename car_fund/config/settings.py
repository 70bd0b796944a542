"""
Configuration Management for Car Fund Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Cloud sync is optional: without Google Sheets settings the tracker
runs in local-only mode and never schedules a push. Without SMTP
settings cloud sync still starts, but nobody can sign in.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """Local persistence and display configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CAR_FUND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    state_path: Path = Field(
        default=Path("data/car_fund_state.json"),
        description="File holding the serialized state document"
    )
    session_path: Path = Field(
        default=Path("data/car_fund_sessions.json"),
        description="File holding pending sign-in links and signed-in sessions"
    )
    currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="ISO currency code used for display"
    )


class SyncSettings(BaseSettings):
    """Cloud sync behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="CAR_FUND_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=False,
        description="Mirror the state document to the remote store"
    )
    debounce_seconds: float = Field(
        default=0.8,
        gt=0.0,
        le=60.0,
        description="Quiet interval before a scheduled push is sent"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout for a single remote request"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

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
    state_sheet_name: str = Field(
        default="user_state",
        description="Worksheet holding one state row per account"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before enabling cloud sync."
            )
        return v


class MailSettings(BaseSettings):
    """SMTP delivery for sign-in links."""

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    host: str = Field(
        ...,
        description="SMTP server host"
    )
    port: int = Field(
        default=587,
        gt=0,
        le=65535,
        description="SMTP server port"
    )
    username: Optional[str] = Field(
        default=None,
        description="SMTP login; no login when unset"
    )
    password: Optional[SecretStr] = Field(
        default=None,
        description="SMTP password"
    )
    sender: str = Field(
        ...,
        description="From address for sign-in emails"
    )
    use_starttls: bool = Field(
        default=True,
        description="Upgrade the connection with STARTTLS before sending"
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

    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )
    sign_in_redirect_url: str = Field(
        default="http://localhost:8501/",
        description="Where the passwordless sign-in link points"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Sub-settings are loaded lazily so a missing Google Sheets
    # configuration doesn't break local-only use.

    @property
    def tracker(self) -> TrackerSettings:
        return TrackerSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def mail(self) -> MailSettings:
        return MailSettings()

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

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing what went wrong. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "tracker": lambda: settings.tracker,
        "sync": lambda: settings.sync,
        "google_sheets": lambda: settings.google_sheets,
        "mail": lambda: settings.mail,
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
