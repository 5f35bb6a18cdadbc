"""Configuration package."""

from exemption_tracker.config.settings import (
    AppSettings,
    ExemptionSettings,
    GoogleSheetsSettings,
    RateSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExemptionSettings",
    "GoogleSheetsSettings",
    "RateSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
