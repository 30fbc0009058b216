"""Tests for the currency registry."""

import pytest

from currency_engine.models.currency import SupportedCurrency
from currency_engine.registry import (
    FALLBACK_CURRENCIES,
    CurrencyRegistry,
    UnsupportedCurrencyError,
)
from currency_engine.services.storage import (
    CurrencySourceInterface,
    InMemoryCurrencySource,
    StorageError,
)


class BrokenSource(CurrencySourceInterface):
    async def load_currencies(self):
        raise StorageError("sheet unavailable")


class TestLookups:
    """Tests for get / find / is_supported / search."""

    def test_fallback_set_is_default(self, registry):
        """Test that a new registry is never empty."""
        codes = [c.code for c in registry.list_active()]
        assert len(codes) == 14
        assert codes == sorted(codes)

    def test_get_is_case_insensitive(self, registry):
        assert registry.get("eur").code == "EUR"

    def test_get_unknown_raises(self, registry):
        """Test NotFound surfaces as UnsupportedCurrencyError."""
        with pytest.raises(UnsupportedCurrencyError) as exc_info:
            registry.get("XYZ")
        assert exc_info.value.code == "XYZ"

    def test_find_and_is_supported(self, registry):
        assert registry.find("XYZ") is None
        assert registry.is_supported("inr") is True
        assert registry.is_supported("XYZ") is False

    def test_jpy_has_no_minor_units(self, registry):
        assert registry.get("JPY").minor_unit_digits == 0

    def test_search_matches_code_and_name(self, registry):
        """Test case-insensitive substring search."""
        assert [c.code for c in registry.search("rupee")] == ["INR", "LKR"]
        assert [c.code for c in registry.search("gb")] == ["GBP"]

    def test_empty_search_returns_all(self, registry):
        assert registry.search("  ") == registry.list_active()


class TestPopularSubset:
    """Tests for the popular currency picker list."""

    def test_base_first_then_priority_order(self, registry):
        """Test default ordering and size."""
        codes = [c.code for c in registry.popular_subset()]
        assert codes == ["USD", "EUR", "GBP", "INR", "JPY", "CNY", "CAD", "AUD"]

    def test_pads_from_remaining_active(self):
        """Test padding when priority codes are missing."""
        registry = CurrencyRegistry(popular_order=["EUR", "XXX"], popular_limit=4)
        codes = [c.code for c in registry.popular_subset()]
        assert codes == ["USD", "EUR", "AED", "AUD"]

    def test_base_currency_is_first_even_if_not_usd(self):
        registry = CurrencyRegistry(base_currency="INR")
        assert registry.popular_subset()[0].code == "INR"


class TestLoading:
    """Tests for loading from a currency source."""

    @pytest.mark.asyncio
    async def test_load_from_source(self):
        """Test that source currencies replace the fallback set."""
        source = InMemoryCurrencySource([
            SupportedCurrency(code="USD", name="US Dollar", symbol="$"),
            SupportedCurrency(code="CHF", name="Swiss Franc", symbol="CHF"),
        ])
        registry = CurrencyRegistry()
        active = await registry.load(source)
        assert active == 2
        assert registry.is_supported("CHF")
        assert not registry.is_supported("INR")

    @pytest.mark.asyncio
    async def test_base_added_when_source_omits_it(self):
        """Test that the base currency is always present."""
        source = InMemoryCurrencySource([
            SupportedCurrency(code="EUR", name="Euro", symbol="€"),
        ])
        registry = CurrencyRegistry(base_currency="USD")
        await registry.load(source)
        assert registry.get("USD").name == "US Dollar"

    @pytest.mark.asyncio
    async def test_storage_error_falls_back(self):
        """Test that a failing source yields the fallback set."""
        registry = CurrencyRegistry()
        active = await registry.load(BrokenSource())
        assert active == len(FALLBACK_CURRENCIES)

    @pytest.mark.asyncio
    async def test_empty_source_falls_back(self):
        registry = CurrencyRegistry()
        active = await registry.load(InMemoryCurrencySource([]))
        assert active == len(FALLBACK_CURRENCIES)


class TestDeactivate:
    """Tests for deactivation."""

    def test_deactivated_currency_is_unsupported_but_kept(self, registry):
        """Test that deactivation hides a currency without removing it."""
        result = registry.deactivate("gbp")
        assert result.is_active is False
        assert not registry.is_supported("GBP")
        with pytest.raises(UnsupportedCurrencyError):
            registry.get("GBP")

    def test_cannot_deactivate_base(self, registry):
        with pytest.raises(ValueError):
            registry.deactivate("USD")

    def test_deactivate_unknown(self, registry):
        with pytest.raises(UnsupportedCurrencyError):
            registry.deactivate("XYZ")
