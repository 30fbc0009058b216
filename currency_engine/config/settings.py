"""
Currency Engine Configuration

Three pydantic-settings groups, each with its own environment prefix:
    RATE_PROVIDER_     where rates come from and how hard to try
    GOOGLE_SHEETS_     optional persistent backend
    CURRENCY_ENGINE_   base currency, staleness and refresh cadence

DESIGN DECISION: Google Sheets settings have required fields, so they are
only built when asked for. An engine without Sheets configured still starts
with in-memory storage.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateProviderSettings(BaseSettings):
    """External exchange-rate provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RATE_PROVIDER_",
        extra="ignore"
    )

    name: str = Field(
        default="exchangerate-api",
        description="Name of the primary provider (recorded on persisted rates)"
    )
    url_template: str = Field(
        default="https://api.exchangerate-api.com/v4/latest/{base}",
        description="Latest-rates URL; {base} is replaced by the base currency"
    )
    fallback_url_templates: str = Field(
        default="https://open.er-api.com/v6/latest/{base}",
        description="Comma-separated URLs tried in order when the primary fails"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Optional API key, sent as the access_key query parameter"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Upper bound for a single fetch"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per provider for transport errors"
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base of the exponential backoff between attempts"
    )

    refresh_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Upper bound for a whole refresh across the provider chain; "
                    "derived from the per-request settings when unset"
    )

    @property
    def fallback_urls_list(self) -> list[str]:
        """Get fallback URLs as a list."""
        return [url.strip() for url in self.fallback_url_templates.split(",") if url.strip()]

    @property
    def refresh_budget_seconds(self) -> float:
        """
        Time a refresh may take before it is abandoned.

        When not configured, covers every attempt of every provider in the
        chain plus the backoff between attempts (capped at 10s, as the
        provider's retry policy is), with one second of slack.
        """
        if self.refresh_timeout_seconds is not None:
            return self.refresh_timeout_seconds
        backoff = sum(
            min(self.retry_backoff_seconds * 2 ** attempt, 10)
            for attempt in range(self.retry_attempts - 1)
        )
        per_provider = self.retry_attempts * self.timeout_seconds + backoff
        return (1 + len(self.fallback_urls_list)) * per_provider + 1.0


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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

    # Sheet names within the spreadsheet
    rates_sheet_name: str = Field(
        default="ExchangeRates",
        description="Name of the sheet for historical exchange rates"
    )
    audit_sheet_name: str = Field(
        default="ConversionAudit",
        description="Name of the sheet for conversion audit records"
    )
    currencies_sheet_name: str = Field(
        default="SupportedCurrencies",
        description="Name of the sheet listing supported currencies"
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


class EngineSettings(BaseSettings):
    """
    Main engine settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CURRENCY_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Rates
    base_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency all stored rates are expressed against"
    )
    stale_threshold_hours: float = Field(
        default=24,
        gt=0,
        description="Age after which the rate snapshot is reported as stale"
    )
    refresh_interval_seconds: float = Field(
        default=300,
        gt=0,
        description="Auto-refresh interval while online"
    )
    staleness_check_interval_seconds: float = Field(
        default=3600,
        gt=0,
        description="How often the staleness monitor re-evaluates the snapshot"
    )

    # Currency pickers
    popular_currencies: str = Field(
        default="EUR,GBP,INR,JPY,CNY,CAD,AUD",
        description="Comma-separated priority order after the base currency"
    )
    popular_limit: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Total size of the popular currency list (base included)"
    )

    @field_validator('base_currency')
    @classmethod
    def normalize_base_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case."""
        return v.strip().upper()

    @property
    def popular_currencies_list(self) -> list[str]:
        """Get popular currencies as a list."""
        return [code.strip().upper() for code in self.popular_currencies.split(",") if code.strip()]


class Settings(BaseSettings):
    """
    Entry point for the three settings groups.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Built on access so a missing group only fails where it is used

    @property
    def rate_provider(self) -> RateProviderSettings:
        return RateProviderSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings. Tests call get_settings.cache_clear() after patching env."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Start-up check of each settings group.

    Returns {group: ok} plus a {group}_error message for each group that failed.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.rate_provider
        results["rate_provider"] = True
    except Exception as e:
        results["rate_provider"] = False
        results["rate_provider_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.engine
        results["engine"] = True
    except Exception as e:
        results["engine"] = False
        results["engine_error"] = str(e)

    return results
