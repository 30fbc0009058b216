"""Configuration package."""

from currency_engine.config.settings import (
    EngineSettings,
    GoogleSheetsSettings,
    RateProviderSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "EngineSettings",
    "GoogleSheetsSettings",
    "RateProviderSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
