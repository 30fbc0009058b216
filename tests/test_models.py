"""
Tests for the Currency Engine data models

Test strategy:
1. Unit tests for individual components (models, calculators)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from currency_engine.models import (
    AUDIT_COLUMNS,
    ConversionCase,
    ConversionResult,
    ExchangeRate,
    ExecutionAuditRecord,
    ExecutionRequest,
    OperationKind,
    RateSnapshot,
    RateSource,
    SupportedCurrency,
)


class TestSupportedCurrency:
    """Tests for SupportedCurrency reference data."""

    def test_code_is_upper_cased(self):
        """Test that codes are normalised to upper case."""
        currency = SupportedCurrency(code=" eur ", name="Euro", symbol="€")
        assert currency.code == "EUR"

    def test_rejects_bad_code(self):
        """Test that non three-letter codes are rejected."""
        with pytest.raises(ValidationError):
            SupportedCurrency(code="EURO", name="Euro", symbol="€")

    def test_quantum_follows_minor_units(self):
        """Test quantum for 2 and 0 minor digits."""
        usd = SupportedCurrency(code="USD", name="US Dollar", symbol="$")
        jpy = SupportedCurrency(code="JPY", name="Yen", symbol="¥", minor_unit_digits=0)
        assert usd.quantum == Decimal("0.01")
        assert jpy.quantum == Decimal("1")

    def test_deactivated_returns_new_instance(self):
        """Test that deactivation does not mutate the original."""
        usd = SupportedCurrency(code="USD", name="US Dollar", symbol="$")
        inactive = usd.deactivated()
        assert usd.is_active is True
        assert inactive.is_active is False
        assert inactive.code == "USD"

    def test_is_frozen(self):
        """Test that currencies are immutable."""
        usd = SupportedCurrency(code="USD", name="US Dollar", symbol="$")
        with pytest.raises(ValidationError):
            usd.name = "Dollar"


class TestExchangeRate:
    """Tests for persisted rate rows."""

    def test_rate_must_be_positive(self):
        """Test that zero and negative rates are rejected."""
        with pytest.raises(ValidationError):
            ExchangeRate(
                from_currency="USD",
                to_currency="EUR",
                rate=Decimal("0"),
                source=RateSource.API,
            )

    def test_same_currency_source_not_storable(self):
        """Test that same_currency never appears on a stored rate."""
        with pytest.raises(ValidationError):
            ExchangeRate(
                from_currency="USD",
                to_currency="EUR",
                rate=Decimal("0.92"),
                source=RateSource.SAME_CURRENCY,
            )

    def test_fetched_at_is_timezone_aware(self):
        """Test default fetched_at carries a timezone."""
        rate = ExchangeRate(
            from_currency="usd",
            to_currency="eur",
            rate=Decimal("0.92"),
            source=RateSource.API,
        )
        assert rate.fetched_at.tzinfo is not None
        assert rate.from_currency == "USD"


class TestRateSnapshot:
    """Tests for the rate snapshot."""

    def test_base_rate_is_always_one(self):
        """Test that the base currency is pinned to 1."""
        snapshot = RateSnapshot(base_currency="USD", rates={"EUR": Decimal("0.92")})
        assert snapshot.rates["USD"] == Decimal("1")

    def test_base_rate_overrides_wrong_value(self):
        """Test that a bogus base rate is corrected."""
        snapshot = RateSnapshot(
            base_currency="USD",
            rates={"USD": Decimal("3"), "EUR": Decimal("0.92")},
        )
        assert snapshot.rates["USD"] == Decimal("1")

    def test_keys_are_upper_cased(self):
        snapshot = RateSnapshot(rates={"eur": Decimal("0.92")})
        assert snapshot.has("EUR")
        assert snapshot.has("eur")

    def test_rejects_non_positive_rate(self):
        """Test that a zero rate is rejected."""
        with pytest.raises(ValidationError):
            RateSnapshot(rates={"EUR": Decimal("0")})

    def test_rate_between_cross_rate(self):
        """Test cross rates go through the base currency."""
        snapshot = RateSnapshot(
            rates={"EUR": Decimal("0.8"), "GBP": Decimal("0.5")},
        )
        assert snapshot.rate_between("EUR", "GBP") == Decimal("0.5") / Decimal("0.8")
        assert snapshot.rate_between("USD", "EUR") == Decimal("0.8")

    def test_rate_between_missing(self):
        """Test that a missing code yields None."""
        snapshot = RateSnapshot(rates={"EUR": Decimal("0.92")})
        assert snapshot.rate_between("USD", "GBP") is None
        assert snapshot.rate_between("GBP", "GBP") == Decimal("1")


class TestConversionResult:
    """Tests for conversion transparency."""

    def test_display_text_for_api_rate(self):
        """Test the transparency line."""
        result = ConversionResult(
            original_amount=Decimal("100"),
            converted_amount=Decimal("92.00"),
            from_currency="USD",
            to_currency="EUR",
            rate=Decimal("0.92"),
            source=RateSource.API,
            rate_date=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        )
        assert result.display_text == "Converted using rate 0.920000 (api) on 2024-03-01"

    def test_display_text_marks_stale(self):
        result = ConversionResult(
            original_amount=Decimal("100"),
            converted_amount=Decimal("92.00"),
            from_currency="USD",
            to_currency="EUR",
            rate=Decimal("0.92"),
            source=RateSource.FALLBACK,
            is_stale=True,
        )
        assert result.display_text.endswith("(stale)")
        assert "unknown date" in result.display_text

    def test_display_text_for_identity(self):
        """Test same-currency message."""
        result = ConversionResult(
            original_amount=Decimal("5"),
            converted_amount=Decimal("5"),
            from_currency="USD",
            to_currency="USD",
            rate=Decimal("1"),
            source=RateSource.SAME_CURRENCY,
        )
        assert result.is_identity is True
        assert result.display_text == "Same currency - no conversion needed"


class TestExecutionModels:
    """Tests for execution request and audit record models."""

    def test_request_normalises_codes(self):
        """Test that codes are upper-cased."""
        request = ExecutionRequest(
            amount=Decimal("10"),
            currency="usd",
            account_id="acc-1",
            account_currency=" eur",
            primary_currency="inr",
        )
        assert request.currency == "USD"
        assert request.account_currency == "EUR"
        assert request.primary_currency == "INR"
        assert request.operation_kind == OperationKind.TRANSACTION
        assert request.entity_id

    def test_request_rejects_float_amount(self):
        """Test that floats are rejected like in the calculator."""
        with pytest.raises(ValidationError):
            ExecutionRequest(
                amount=0.1,
                currency="USD",
                account_id="acc-1",
                account_currency="USD",
                primary_currency="USD",
            )
        request = ExecutionRequest(
            amount="0.1",
            currency="USD",
            account_id="acc-1",
            account_currency="USD",
            primary_currency="USD",
        )
        assert request.amount == Decimal("0.1")

    def test_request_requires_account(self):
        """Test that an empty account id is rejected."""
        with pytest.raises(ValidationError):
            ExecutionRequest(
                amount=Decimal("10"),
                currency="USD",
                account_id="",
                account_currency="USD",
                primary_currency="USD",
            )

    def test_audit_record_sheets_row_matches_columns(self):
        """Test that to_sheets_row lines up with AUDIT_COLUMNS."""
        record = ExecutionAuditRecord(
            entity_type="transaction",
            entity_id=str(uuid4()),
            original_amount=Decimal("100"),
            original_currency="USD",
            account_amount=Decimal("100"),
            account_currency="USD",
            primary_amount=Decimal("92.00"),
            primary_currency="EUR",
            exchange_rate=Decimal("0.92"),
            account_rate=Decimal("1"),
            primary_rate=Decimal("0.92"),
            rate_source=RateSource.API,
            conversion_case=ConversionCase.AMOUNT_ACCOUNT_SAME,
        )
        row = record.to_sheets_row()
        assert len(row) == len(AUDIT_COLUMNS)
        assert row[AUDIT_COLUMNS.index("conversion_case")] == "amount_account_same"
        assert record.to_log_dict()["primary_amount"] == "92.00"


class TestEnums:
    """Tests for classification enums."""

    def test_all_conversion_cases_exist(self):
        """Test that the six cases exist."""
        expected = [
            "all_same", "amount_account_same", "amount_primary_same",
            "account_primary_same", "amount_different_others_same", "all_different",
        ]
        for case in expected:
            assert ConversionCase(case) is not None
        assert len(ConversionCase) == 6

    def test_only_goal_creation_allows_zero(self):
        """Test zero-amount policy per operation kind."""
        allowed = [kind for kind in OperationKind if kind.allows_zero_amount]
        assert allowed == [OperationKind.GOAL_CREATION]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
