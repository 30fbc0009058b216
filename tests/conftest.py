"""
Shared fixtures.

Clocks are injected everywhere, so staleness is tested by moving the
clock rather than sleeping.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from currency_engine.audit import ConversionAuditLog
from currency_engine.conversion import ConversionCalculator
from currency_engine.execution import ExecutionEngine
from currency_engine.models.currency import RateSource
from currency_engine.rates import RateStore, StalenessMonitor
from currency_engine.registry import CurrencyRegistry
from currency_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryRateHistoryStorage,
)


START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

LIVE_RATES = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "INR": Decimal("83.45"),
    "JPY": Decimal("150"),
    "CAD": Decimal("1.36"),
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> CurrencyRegistry:
    return CurrencyRegistry()


@pytest.fixture
def monitor(clock) -> StalenessMonitor:
    return StalenessMonitor(threshold_hours=24, clock=clock)


@pytest.fixture
def store(monitor, clock) -> RateStore:
    """Store holding fresh api rates."""
    rate_store = RateStore(base_currency="USD", monitor=monitor, clock=clock)
    rate_store.replace(LIVE_RATES, RateSource.API, fetched_at=clock())
    return rate_store


@pytest.fixture
def calculator(store, registry, monitor) -> ConversionCalculator:
    return ConversionCalculator(store=store, registry=registry, monitor=monitor)


@pytest.fixture
def history() -> InMemoryRateHistoryStorage:
    return InMemoryRateHistoryStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_log(audit_storage, history) -> ConversionAuditLog:
    return ConversionAuditLog(storage=audit_storage, history=history, base_currency="USD")


@pytest.fixture
def engine(calculator, registry, audit_log) -> ExecutionEngine:
    return ExecutionEngine(calculator=calculator, registry=registry, audit_log=audit_log)
