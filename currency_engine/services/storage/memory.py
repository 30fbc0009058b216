"""
In-Memory Storage Implementation

Default backend for a single process and for tests. Follows the same
interfaces as the Google Sheets backend so the engine cannot tell them apart.
"""

from datetime import date
from typing import Iterable, Optional

from currency_engine.models.audit import ExecutionAuditRecord
from currency_engine.models.currency import ExchangeRate, SupportedCurrency
from currency_engine.services.storage.interface import (
    AuditStorageInterface,
    CurrencySourceInterface,
    RateHistoryStorageInterface,
)


class InMemoryRateHistoryStorage(RateHistoryStorageInterface):
    """Rate history kept in a dict keyed by (from, to, day)."""

    def __init__(self):
        self._rows: dict[tuple[str, str, date], ExchangeRate] = {}

    def __len__(self) -> int:
        return len(self._rows)

    async def upsert_rate(self, rate: ExchangeRate) -> bool:
        key = (rate.from_currency, rate.to_currency, rate.fetched_at.date())
        if key in self._rows:
            return False
        self._rows[key] = rate
        return True

    async def get_rate_on(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
    ) -> Optional[ExchangeRate]:
        return self._rows.get((from_currency.upper(), to_currency.upper(), day))

    async def get_latest_rates(self, base_currency: str) -> list[ExchangeRate]:
        base = base_currency.upper()
        latest: dict[str, ExchangeRate] = {}
        for rate in self._rows.values():
            if rate.from_currency != base:
                continue
            current = latest.get(rate.to_currency)
            if current is None or rate.fetched_at > current.fetched_at:
                latest[rate.to_currency] = rate
        return sorted(latest.values(), key=lambda r: r.to_currency)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit records."""

    def __init__(self):
        self._records: list[ExecutionAuditRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    async def append_record(self, record: ExecutionAuditRecord) -> bool:
        self._records.append(record)
        return True

    async def get_records_by_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 20,
    ) -> list[ExecutionAuditRecord]:
        matches = [
            r for r in self._records
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:limit]

    async def get_recent_records(
        self,
        limit: int = 100,
    ) -> list[ExecutionAuditRecord]:
        return sorted(self._records, key=lambda r: r.timestamp, reverse=True)[:limit]


class InMemoryCurrencySource(CurrencySourceInterface):
    """Serves a fixed list of currencies."""

    def __init__(self, currencies: Iterable[SupportedCurrency] = ()):
        self._currencies = list(currencies)

    async def load_currencies(self) -> list[SupportedCurrency]:
        return list(self._currencies)
