"""Configuration package."""

from car_fund.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    MailSettings,
    Settings,
    SyncSettings,
    TrackerSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "MailSettings",
    "Settings",
    "SyncSettings",
    "TrackerSettings",
    "get_settings",
    "validate_all_settings",
]
