"""
Configuration Management for the Exemption Tracker

Sections are pydantic-settings classes, each with its own env prefix.

Every tunable value of the tracker lives here.
The exemption threshold and the approaching ratio are load-time values:
they are read once at startup and never change during a session.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExemptionSettings(BaseSettings):
    """Exemption threshold configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXEMPTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    threshold: Decimal = Field(
        default=Decimal("67000"),
        gt=0,
        description="Annual exemption cap in the domestic currency"
    )
    approaching_ratio: Decimal = Field(
        default=Decimal("0.9"),
        description="Fraction of the threshold that triggers an early warning"
    )
    notify_on_transition_only: bool = Field(
        default=False,
        description="Only notify when the threshold state changes"
    )

    @field_validator('approaching_ratio')
    @classmethod
    def validate_ratio(cls, v: Decimal) -> Decimal:
        """The approaching ratio must be strictly between 0 and 1."""
        if not Decimal("0") < v < Decimal("1"):
            raise ValueError(f"approaching_ratio must be in (0, 1), got {v}")
        return v


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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

    # Sheet names within the spreadsheet
    profiles_sheet_name: str = Field(
        default="Profiles",
        description="Name of the sheet for user profiles"
    )
    income_sheet_name: str = Field(
        default="IncomeEntries",
        description="Name of the sheet for income entries"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Missing credentials only warn; the app falls back to demo mode."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class RateSettings(BaseSettings):
    """Exchange rate source configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RATES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    provider: str = Field(
        default="static",
        pattern="^(static|tcmb)$",
        description="Which rate source to use"
    )
    tcmb_url: str = Field(
        default="https://www.tcmb.gov.tr/kurlar/today.xml",
        description="Central bank daily rates XML"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for rate requests"
    )
    rate_side: str = Field(
        default="buying",
        pattern="^(buying|selling)$",
        description="Which side of the quote is captured on new entries"
    )
    deviation_tolerance: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Allowed relative deviation from the quoted rate before warning"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Read from the environment and .env.
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

    # Validation thresholds
    max_entry_amount: float = Field(
        default=1000000.0,
        description="Maximum reasonable single entry amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        description="How many days in the future an income date can be"
    )
    max_entry_age_days: int = Field(
        default=730,
        description="Entries older than this are flagged for review"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    One lazily built instance per section.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def exemption(self) -> ExemptionSettings:
        return ExemptionSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def rates(self) -> RateSettings:
        return RateSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings.

    Tests call get_settings.cache_clear() after changing the environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Which sections load from the current environment.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" key carrying the message for each failure.
    """
    results = {}

    settings = get_settings()

    for name in ("exemption", "google_sheets", "rates", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
