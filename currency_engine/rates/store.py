"""
Rate Store

Holds the working RateSnapshot for one application context.

DESIGN DECISION: The snapshot is immutable and replaced as a whole.
Readers take the current reference once and compute from it, so a
refresh can never be observed half-applied.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Mapping, Optional

import structlog

from currency_engine.models.currency import RateSnapshot, RateSource, utc_now
from currency_engine.rates.staleness import StalenessMonitor


logger = structlog.get_logger()


# Static table used when no live or persisted rates exist (units per USD)
FALLBACK_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "INR": Decimal("83.45"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "JPY": Decimal("150"),
    "CNY": Decimal("7.24"),
    "MYR": Decimal("4.47"),
    "SGD": Decimal("1.34"),
    "AED": Decimal("3.67"),
    "NZD": Decimal("1.62"),
    "ZAR": Decimal("18.85"),
    "CAD": Decimal("1.36"),
    "LKR": Decimal("325"),
    "AUD": Decimal("1.53"),
}

FALLBACK_BASE = "USD"


class RateStore:
    """In-memory holder of the current rate snapshot."""

    def __init__(
        self,
        base_currency: str = "USD",
        monitor: Optional[StalenessMonitor] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._base_currency = base_currency.upper()
        self._monitor = monitor or StalenessMonitor(clock=clock)
        self._clock = clock
        self._snapshot = RateSnapshot(base_currency=self._base_currency)
        self._populated = False

    @property
    def base_currency(self) -> str:
        return self._base_currency

    @property
    def snapshot(self) -> RateSnapshot:
        return self._snapshot

    @property
    def is_populated(self) -> bool:
        return self._populated

    @property
    def is_stale(self) -> bool:
        return self._monitor.is_stale(self._snapshot)

    def get_rate(self, from_code: str, to_code: str) -> Optional[Decimal]:
        """
        Rate to multiply a from_code amount by to get a to_code amount.

        Returns None when either currency is missing from the snapshot.
        """
        if from_code.upper() == to_code.upper():
            return Decimal("1")
        return self._snapshot.rate_between(from_code, to_code)

    def replace(
        self,
        rates: Mapping[str, Decimal],
        source: RateSource,
        fetched_at: Optional[datetime] = None,
    ) -> RateSnapshot:
        """Swap in a new snapshot built from a full rate table."""
        snapshot = RateSnapshot(
            base_currency=self._base_currency,
            rates=dict(rates),
            last_updated=fetched_at,
            source=source,
        )
        self._snapshot = snapshot
        self._populated = True
        logger.info(
            "rate_snapshot_replaced",
            source=source.value,
            count=len(snapshot.rates),
            last_updated=fetched_at.isoformat() if fetched_at else None,
        )
        return snapshot

    def seed_fallback(self) -> RateSnapshot:
        """
        Install the static fallback table.

        last_updated stays None, so the seeded snapshot reports as stale.
        """
        rates = FALLBACK_RATES
        if self._base_currency != FALLBACK_BASE:
            base_rate = FALLBACK_RATES.get(self._base_currency)
            if base_rate is None:
                logger.warning(
                    "fallback_base_missing",
                    base_currency=self._base_currency,
                )
                rates = {}
            else:
                rates = {code: rate / base_rate for code, rate in FALLBACK_RATES.items()}
        return self.replace(rates, RateSource.FALLBACK, fetched_at=None)

    def apply_manual_rates(
        self,
        rates: Mapping[str, Decimal],
        entered_at: Optional[datetime] = None,
    ) -> RateSnapshot:
        """
        Merge user-entered rates (relative to the base) over the current table.
        """
        merged = dict(self._snapshot.rates)
        for code, rate in rates.items():
            merged[code.upper()] = Decimal(rate)
        return self.replace(merged, RateSource.MANUAL, fetched_at=entered_at or self._clock())
