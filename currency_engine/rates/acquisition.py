"""
Rate Acquisition Service

Fetches rates from a provider and installs them in the rate store.

Each refresh cycle is a small state machine:

    IDLE -> FETCHING -> SUCCEEDED
                     -> FAILED

DESIGN DECISION: A failed refresh never touches a populated snapshot.
The previous rates keep serving conversions and age into staleness.
Only a store that was never populated gets the static fallback table.

CONCURRENCY: At most one fetch is in flight. Concurrent refresh() calls
await the same task through asyncio.shield, so cancelling one waiter
does not abort the shared fetch.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from currency_engine.models.currency import (
    ExchangeRate,
    RateSnapshot,
    RateSource,
    utc_now,
)
from currency_engine.rates.store import RateStore
from currency_engine.services.providers import RateFetchError, RateProviderInterface
from currency_engine.services.storage import RateHistoryStorageInterface, StorageError


logger = structlog.get_logger()


class RefreshState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RefreshOutcome(BaseModel):
    """Result of one refresh cycle (or a manual rate entry)."""
    model_config = ConfigDict(frozen=True)

    state: RefreshState
    snapshot: RateSnapshot
    error: Optional[str] = None
    provider: Optional[str] = None
    persisted_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state == RefreshState.SUCCEEDED


def _always_online() -> bool:
    return True


class RateAcquisitionService:
    """
    Keeps the rate store fed from a provider, with history persistence.

    Persistence is best-effort: a storage failure is logged and the
    refresh still counts as succeeded.
    """

    def __init__(
        self,
        store: RateStore,
        provider: RateProviderInterface,
        history: Optional[RateHistoryStorageInterface] = None,
        is_online: Callable[[], bool] = _always_online,
        timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._provider = provider
        self._history = history
        self._is_online = is_online
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._state = RefreshState.IDLE
        self._inflight: Optional[asyncio.Task] = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def store(self) -> RateStore:
        return self._store

    @property
    def is_refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def refresh(self) -> RefreshOutcome:
        """
        Run a refresh cycle, or join the one already in flight.
        """
        if self._inflight is None or self._inflight.done():
            self._state = RefreshState.FETCHING
            self._inflight = asyncio.create_task(self._run_refresh())
        return await asyncio.shield(self._inflight)

    def _seed_if_empty(self) -> None:
        if not self._store.is_populated:
            logger.info("seeding_fallback_rates", base_currency=self._store.base_currency)
            self._store.seed_fallback()

    def _failed(self, error: str, provider: Optional[str] = None) -> RefreshOutcome:
        self._state = RefreshState.FAILED
        self._seed_if_empty()
        return RefreshOutcome(
            state=RefreshState.FAILED,
            snapshot=self._store.snapshot,
            error=error,
            provider=provider,
        )

    async def _run_refresh(self) -> RefreshOutcome:
        base = self._store.base_currency

        if not self._is_online():
            logger.info("rate_refresh_skipped_offline", base_currency=base)
            return self._failed("offline")

        try:
            rates = await asyncio.wait_for(
                self._provider.fetch_latest(base),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = f"fetch exceeded {self._timeout_seconds}s"
            logger.warning(
                "rate_refresh_failed",
                provider=self._provider.name,
                error=error,
            )
            return self._failed(error, provider=self._provider.name)
        except RateFetchError as e:
            logger.warning(
                "rate_refresh_failed",
                provider=self._provider.name,
                error=str(e),
            )
            return self._failed(str(e), provider=self._provider.name)
        except Exception as e:
            # Provider bug or misconfiguration (e.g. an invalid URL template)
            logger.exception("rate_refresh_crashed", provider=self._provider.name)
            return self._failed(
                f"{type(e).__name__}: {e}",
                provider=self._provider.name,
            )

        fetched_at = self._clock()
        provider_name = self._provider.name
        snapshot = self._store.replace(rates, RateSource.API, fetched_at)
        persisted = await self._persist(snapshot, RateSource.API, provider_name)

        self._state = RefreshState.SUCCEEDED
        logger.info(
            "rates_refreshed",
            provider=provider_name,
            count=len(snapshot.rates),
            persisted=persisted,
        )
        return RefreshOutcome(
            state=RefreshState.SUCCEEDED,
            snapshot=snapshot,
            provider=provider_name,
            persisted_count=persisted,
        )

    async def _persist(
        self,
        snapshot: RateSnapshot,
        source: RateSource,
        provider: Optional[str],
        codes: Optional[set[str]] = None,
    ) -> int:
        """
        Write one history row per currency as a single batch.

        Returns:
            Number of rows inserted (0 when the batch write failed)
        """
        if self._history is None:
            return 0

        fetched_at = snapshot.last_updated or self._clock()
        rows = [
            ExchangeRate(
                from_currency=snapshot.base_currency,
                to_currency=code,
                rate=rate,
                source=source,
                fetched_at=fetched_at,
                provider=provider,
            )
            for code, rate in sorted(snapshot.rates.items())
            if code != snapshot.base_currency and (codes is None or code in codes)
        ]
        if not rows:
            return 0

        try:
            return await self._history.upsert_rates(rows)
        except StorageError as e:
            logger.error(
                "rate_persistence_failed",
                error=str(e),
                count=len(rows),
            )
            return 0

    async def bootstrap(self) -> RateSnapshot:
        """
        Seed the store at start-up.

        Uses the latest persisted history when there is any, otherwise
        the static fallback table.

        The snapshot is dated by its OLDEST row, so one recent manual rate
        cannot make older rates look fresh. Rows from mixed sources are
        labelled fallback.
        """
        base = self._store.base_currency
        latest: list[ExchangeRate] = []

        if self._history is not None:
            try:
                latest = await self._history.get_latest_rates(base)
            except StorageError as e:
                logger.warning("rate_history_unavailable", error=str(e))

        if latest:
            oldest = min(r.fetched_at for r in latest)
            sources = {r.source for r in latest}
            source = sources.pop() if len(sources) == 1 else RateSource.FALLBACK
            snapshot = self._store.replace(
                {r.to_currency: r.rate for r in latest},
                source,
                oldest,
            )
            logger.info(
                "rates_loaded_from_history",
                count=len(latest),
                source=source.value,
                last_updated=oldest.isoformat(),
            )
            return snapshot

        return self._store.seed_fallback()

    async def record_manual_rates(self, rates: Mapping[str, Decimal]) -> RefreshOutcome:
        """
        Apply user-entered rates (relative to the base) and persist them.
        """
        snapshot = self._store.apply_manual_rates(rates, entered_at=self._clock())
        persisted = await self._persist(
            snapshot,
            RateSource.MANUAL,
            provider=None,
            codes={code.upper() for code in rates},
        )
        logger.info("manual_rates_recorded", count=len(rates), persisted=persisted)
        return RefreshOutcome(
            state=RefreshState.SUCCEEDED,
            snapshot=snapshot,
            provider=RateSource.MANUAL.value,
            persisted_count=persisted,
        )
