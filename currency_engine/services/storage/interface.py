"""
Storage Contracts

Three narrow contracts back the engine:
- rate history: one row per currency pair per day, read by date or latest
- audit storage: append-only execution records, read newest first
- currency source: the supported currency list for the registry

DESIGN DECISION: Backends raise StorageError subclasses only. Callers
handle persistence failures without knowing which backend is wired in,
so the in-memory and Google Sheets backends are interchangeable.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, Sequence

from currency_engine.models.audit import ExecutionAuditRecord
from currency_engine.models.currency import ExchangeRate, SupportedCurrency


class RateHistoryStorageInterface(ABC):
    """
    Abstract interface for historical exchange-rate storage.

    Rows are keyed by (from_currency, to_currency, fetched_at date).
    Existing rows are never overwritten.
    """

    @abstractmethod
    async def upsert_rate(self, rate: ExchangeRate) -> bool:
        """
        Insert a rate unless one already exists for the same pair and day.

        Args:
            rate: The rate to persist

        Returns:
            True if a row was inserted, False if the day was already recorded

        Raises:
            StorageError: If the write fails
        """
        pass

    async def upsert_rates(self, rates: Sequence[ExchangeRate]) -> int:
        """
        Insert a batch of rates, skipping pairs already recorded that day.

        Backends with expensive reads override this to check and write the
        whole batch at once.

        Returns:
            Number of rows inserted

        Raises:
            StorageError: If the write fails
        """
        inserted = 0
        for rate in rates:
            if await self.upsert_rate(rate):
                inserted += 1
        return inserted

    @abstractmethod
    async def get_rate_on(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
    ) -> Optional[ExchangeRate]:
        """
        Get the rate recorded for a pair on a given day.

        Returns:
            The rate if one was recorded, None otherwise
        """
        pass

    @abstractmethod
    async def get_latest_rates(self, base_currency: str) -> list[ExchangeRate]:
        """
        Get the most recent rate of every currency against the base.

        Returns:
            One rate per target currency (empty list if nothing is stored)
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for conversion audit storage.

    Audit records are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_record(self, record: ExecutionAuditRecord) -> bool:
        """
        Append an audit record.

        Returns:
            True if stored successfully

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_records_by_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 20,
    ) -> list[ExecutionAuditRecord]:
        """
        Get records for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'transaction', 'goal')
            entity_id: The entity's ID
            limit: Maximum number of records to return

        Returns:
            List of records (newest first)
        """
        pass

    @abstractmethod
    async def get_recent_records(
        self,
        limit: int = 100,
    ) -> list[ExecutionAuditRecord]:
        """
        Get the most recent audit records.

        Returns:
            List of recent records (newest first)
        """
        pass


class CurrencySourceInterface(ABC):
    """Where the currency registry loads its reference data from."""

    @abstractmethod
    async def load_currencies(self) -> list[SupportedCurrency]:
        """
        Load every known currency, active or not.

        Raises:
            StorageError: If the source cannot be read
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PersistenceError(StorageError):
    """A write reached the backend but did not complete."""
    pass
