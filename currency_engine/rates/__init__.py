"""Rate store, acquisition and freshness tracking."""

from currency_engine.rates.staleness import StalenessMonitor, is_stale
from currency_engine.rates.store import FALLBACK_RATES, RateStore
from currency_engine.rates.acquisition import (
    RateAcquisitionService,
    RefreshOutcome,
    RefreshState,
)
from currency_engine.rates.scheduler import AutoRefreshScheduler

__all__ = [
    "AutoRefreshScheduler",
    "FALLBACK_RATES",
    "RateAcquisitionService",
    "RateStore",
    "RefreshOutcome",
    "RefreshState",
    "StalenessMonitor",
    "is_stale",
]
