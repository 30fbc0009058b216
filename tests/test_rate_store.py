"""Tests for the rate store and staleness monitor."""

import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from currency_engine.models.currency import RateSnapshot, RateSource
from currency_engine.rates import FALLBACK_RATES, RateStore, StalenessMonitor, is_stale

from conftest import START


class TestRateStore:
    """Tests for snapshot replacement and lookups."""

    def test_new_store_is_unpopulated(self, monitor, clock):
        store = RateStore(monitor=monitor, clock=clock)
        assert store.is_populated is False
        assert store.get_rate("USD", "EUR") is None

    def test_same_currency_is_one_without_snapshot(self, monitor, clock):
        """Test identity lookups never consult the store."""
        store = RateStore(monitor=monitor, clock=clock)
        assert store.get_rate("XYZ", "xyz") == Decimal("1")

    def test_cross_rate(self, store):
        """Test rates[to] / rates[from]."""
        assert store.get_rate("USD", "EUR") == Decimal("0.92")
        assert store.get_rate("EUR", "GBP") == Decimal("0.79") / Decimal("0.92")

    def test_missing_code_is_unavailable(self, store):
        assert store.get_rate("USD", "LKR") is None

    def test_replace_swaps_whole_snapshot(self, store, clock):
        """Test that replacement never mutates the old snapshot."""
        before = store.snapshot
        store.replace({"EUR": Decimal("0.90")}, RateSource.API, fetched_at=clock())
        assert before.rates["EUR"] == Decimal("0.92")
        assert store.snapshot.rates == {"EUR": Decimal("0.90"), "USD": Decimal("1")}

    def test_seed_fallback(self, monitor, clock):
        """Test fallback table is installed and reported stale."""
        store = RateStore(monitor=monitor, clock=clock)
        snapshot = store.seed_fallback()
        assert snapshot.source == RateSource.FALLBACK
        assert snapshot.last_updated is None
        assert snapshot.rates["INR"] == Decimal("83.45")
        assert len(snapshot.rates) == len(FALLBACK_RATES)
        assert store.is_populated is True
        assert store.is_stale is True

    def test_seed_fallback_rebases(self, monitor, clock):
        """Test fallback rates are rebased to a non-USD base."""
        store = RateStore(base_currency="EUR", monitor=monitor, clock=clock)
        store.seed_fallback()
        assert store.snapshot.rates["EUR"] == Decimal("1")
        assert store.snapshot.rates["USD"] == Decimal("1") / Decimal("0.92")

    def test_apply_manual_rates_merges(self, store, clock):
        """Test that manual rates override only the given codes."""
        clock.advance(hours=1)
        snapshot = store.apply_manual_rates({"eur": Decimal("0.95"), "LKR": Decimal("300")})
        assert snapshot.source == RateSource.MANUAL
        assert snapshot.last_updated == clock()
        assert snapshot.rates["EUR"] == Decimal("0.95")
        assert snapshot.rates["LKR"] == Decimal("300")
        assert snapshot.rates["GBP"] == Decimal("0.79")


class TestStaleness:
    """Tests for staleness derivation."""

    def test_never_updated_is_stale(self):
        assert is_stale(RateSnapshot(), now=START) is True

    def test_threshold_boundary(self):
        """Test exactly-at-threshold is still fresh."""
        snapshot = RateSnapshot(
            rates={"EUR": Decimal("0.92")},
            last_updated=START,
            source=RateSource.API,
        )
        assert is_stale(snapshot, 24, now=START + timedelta(hours=24)) is False
        assert is_stale(snapshot, 24, now=START + timedelta(hours=24, seconds=1)) is True

    def test_store_becomes_stale_as_clock_moves(self, store, clock):
        """Test staleness without sleeping."""
        assert store.is_stale is False
        clock.advance(hours=25)
        assert store.is_stale is True

    def test_check_logs_transitions_once(self, store, clock, caplog):
        """Test that only fresh -> stale transitions warn."""
        monitor = StalenessMonitor(threshold_hours=24, clock=clock)
        caplog.set_level(logging.INFO)

        assert monitor.check(store.snapshot) is False
        clock.advance(hours=30)
        assert monitor.check(store.snapshot) is True
        assert monitor.check(store.snapshot) is True

        stale_logs = [r for r in caplog.records if "rates_stale" in r.getMessage()]
        assert len(stale_logs) == 1

        store.replace({"EUR": Decimal("0.9")}, RateSource.API, fetched_at=clock())
        assert monitor.check(store.snapshot) is False
        assert any("rates_fresh" in r.getMessage() for r in caplog.records)
