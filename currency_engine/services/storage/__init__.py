"""
Storage Services Package

Provides abstract interfaces and concrete implementations for rate history,
audit records and currency reference data. In-memory is the default backend;
Google Sheets is available for persistence and is designed to be swappable.
"""

from currency_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CurrencySourceInterface,
    PersistenceError,
    RateHistoryStorageInterface,
    StorageError,
)
from currency_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryCurrencySource,
    InMemoryRateHistoryStorage,
)
from currency_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCurrencySource,
    GoogleSheetsRateHistoryStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CurrencySourceInterface",
    "RateHistoryStorageInterface",
    # Exceptions
    "ConnectionError",
    "PersistenceError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryCurrencySource",
    "InMemoryRateHistoryStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCurrencySource",
    "GoogleSheetsRateHistoryStorage",
]
