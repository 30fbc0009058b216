"""Tests for the conversion calculator."""

from decimal import Decimal

import pytest

from currency_engine.conversion import ConversionCalculator, ConversionUnavailableError
from currency_engine.models.currency import RateSource
from currency_engine.rates import RateStore
from currency_engine.registry import UnsupportedCurrencyError


class TestConvert:
    """Tests for convert()."""

    def test_usd_to_eur(self, calculator, clock):
        """Test 100 USD -> 92.00 EUR at 0.92."""
        result = calculator.convert(Decimal("100"), "USD", "EUR")
        assert result.converted_amount == Decimal("92.00")
        assert result.rate == Decimal("0.92")
        assert result.source == RateSource.API
        assert result.rate_date == clock()
        assert result.is_stale is False

    def test_identity_law(self, calculator):
        """Test same-currency conversion returns the amount unchanged."""
        for amount in (Decimal("0"), Decimal("12.345"), Decimal("99999.99")):
            result = calculator.convert(amount, "GBP", "gbp")
            assert result.converted_amount == amount
            assert result.rate == Decimal("1")
            assert result.source == RateSource.SAME_CURRENCY
            assert result.is_stale is False
            assert result.rate_date is None

    def test_identity_for_code_without_rate(self, calculator):
        """Test identity needs no rate at all."""
        result = calculator.convert(Decimal("10"), "LKR", "LKR")
        assert result.converted_amount == Decimal("10")

    def test_round_trip_within_one_minor_unit(self, calculator):
        """Test X -> Y -> X stays within one minor unit of X."""
        for amount in (Decimal("1.00"), Decimal("37.45"), Decimal("1000.01")):
            there = calculator.convert(amount, "USD", "INR").converted_amount
            back = calculator.convert(there, "INR", "USD").converted_amount
            assert abs(back - amount) <= Decimal("0.01")

    def test_rounds_half_up_to_minor_units(self, calculator):
        """Test ROUND_HALF_UP to the destination's digits."""
        result = calculator.convert(Decimal("500"), "INR", "USD")
        assert result.converted_amount == Decimal("5.99")

    def test_jpy_has_no_decimals(self, calculator):
        result = calculator.convert(Decimal("10.01"), "USD", "JPY")
        assert result.converted_amount == Decimal("1502")
        assert result.converted_amount.as_tuple().exponent == 0

    def test_missing_rate_raises(self, calculator):
        """Test that a missing rate is never defaulted to 1."""
        with pytest.raises(ConversionUnavailableError) as exc_info:
            calculator.convert(Decimal("100"), "USD", "LKR")
        assert exc_info.value.from_currency == "USD"
        assert exc_info.value.to_currency == "LKR"

    def test_unknown_destination_raises(self, calculator, store, clock):
        """Test rate present but currency not in the registry."""
        store.replace({"XAU": Decimal("0.0005")}, RateSource.API, fetched_at=clock())
        with pytest.raises(UnsupportedCurrencyError):
            calculator.convert(Decimal("100"), "USD", "XAU")

    def test_stale_flag_follows_clock(self, calculator, clock):
        clock.advance(hours=48)
        result = calculator.convert(Decimal("100"), "USD", "EUR")
        assert result.is_stale is True
        assert result.display_text.endswith("(stale)")

    def test_fallback_snapshot_is_stale(self, registry, monitor, clock):
        """Test fallback rates convert but report stale."""
        store = RateStore(monitor=monitor, clock=clock)
        store.seed_fallback()
        calculator = ConversionCalculator(store=store, registry=registry, monitor=monitor)
        result = calculator.convert(Decimal("100"), "USD", "EUR")
        assert result.converted_amount == Decimal("92.00")
        assert result.source == RateSource.FALLBACK
        assert result.is_stale is True

    def test_float_amounts_rejected(self, calculator):
        with pytest.raises(TypeError):
            calculator.convert(1.5, "USD", "EUR")


class TestPresentation:
    """Tests for transparency text and formatting helpers."""

    def test_transparency_text(self, calculator):
        result = calculator.convert(Decimal("100"), "USD", "EUR")
        assert calculator.transparency_text(result) == (
            "Converted using rate 0.920000 (api) on 2024-03-01"
        )

    def test_transparency_text_identity(self, calculator):
        result = calculator.convert(Decimal("100"), "USD", "USD")
        assert calculator.transparency_text(result) == "Same currency - no conversion needed"

    def test_format_amount(self, calculator):
        """Test symbol and code formatting."""
        assert calculator.format_amount(Decimal("1234.5"), "USD") == "$1,234.50"
        assert calculator.format_amount(Decimal("1234.5"), "USD", show_symbol=False) == "1,234.50 USD"
        assert calculator.format_amount(Decimal("1234.5"), "JPY") == "¥1,235"
        assert calculator.format_amount(Decimal("-5"), "EUR") == "-€5.00"

    def test_minor_units(self, calculator):
        """Test conversion to and from minor units."""
        assert calculator.to_minor_units(Decimal("12.345"), "USD") == 1235
        assert calculator.to_minor_units(Decimal("150"), "JPY") == 150
        assert calculator.from_minor_units(1235, "USD") == Decimal("12.35")
        assert calculator.from_minor_units(150, "JPY") == Decimal("150")
