"""Services package."""

from currency_engine.services.providers import (
    FallbackChainProvider,
    HttpRateProvider,
    RateFetchError,
    RateProviderInterface,
    StaticRateProvider,
)
from currency_engine.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CurrencySourceInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCurrencySource,
    GoogleSheetsRateHistoryStorage,
    InMemoryAuditStorage,
    InMemoryCurrencySource,
    InMemoryRateHistoryStorage,
    PersistenceError,
    RateHistoryStorageInterface,
    StorageError,
)

__all__ = [
    # Rate providers
    "FallbackChainProvider",
    "HttpRateProvider",
    "RateFetchError",
    "RateProviderInterface",
    "StaticRateProvider",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "CurrencySourceInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCurrencySource",
    "GoogleSheetsRateHistoryStorage",
    "InMemoryAuditStorage",
    "InMemoryCurrencySource",
    "InMemoryRateHistoryStorage",
    "PersistenceError",
    "RateHistoryStorageInterface",
    "StorageError",
]
