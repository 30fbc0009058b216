"""
Conversion Calculator

Pure, synchronous conversion of one amount between two currencies.

DESIGN DECISION: A missing rate is an error, never a default of 1.
Returning the input unchanged for an unknown pair would silently store
wrong numbers.

Rounding is ROUND_HALF_UP to the destination currency's minor unit
(2 places for most currencies, 0 for JPY).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from currency_engine.models.currency import ConversionResult, RateSource
from currency_engine.rates.staleness import StalenessMonitor
from currency_engine.rates.store import RateStore
from currency_engine.registry import CurrencyRegistry


AmountLike = Union[Decimal, int, str]


class ConversionUnavailableError(Exception):
    """No rate is available for the requested pair."""

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"No exchange rate available from {from_currency} to {to_currency}"
        )


def _to_decimal(amount: AmountLike) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        raise TypeError("Amounts must be Decimal, int or str, not float")
    return Decimal(str(amount))


class ConversionCalculator:
    """
    Converts amounts using the rate store's current snapshot.

    Each conversion reads the snapshot exactly once, so the rate, source
    and staleness in a result always belong together.
    """

    def __init__(
        self,
        store: RateStore,
        registry: CurrencyRegistry,
        monitor: StalenessMonitor,
    ):
        self._store = store
        self._registry = registry
        self._monitor = monitor

    def convert(
        self,
        amount: AmountLike,
        from_code: str,
        to_code: str,
    ) -> ConversionResult:
        """
        Convert an amount.

        Raises:
            ConversionUnavailableError: If either currency has no rate
            UnsupportedCurrencyError: If the destination is not in the registry
        """
        amount = _to_decimal(amount)
        from_code = from_code.strip().upper()
        to_code = to_code.strip().upper()

        if from_code == to_code:
            return ConversionResult(
                original_amount=amount,
                converted_amount=amount,
                from_currency=from_code,
                to_currency=to_code,
                rate=Decimal("1"),
                source=RateSource.SAME_CURRENCY,
                rate_date=None,
                is_stale=False,
            )

        snapshot = self._store.snapshot
        rate = snapshot.rate_between(from_code, to_code)
        if rate is None:
            raise ConversionUnavailableError(from_code, to_code)

        destination = self._registry.get(to_code)
        converted = (amount * rate).quantize(destination.quantum, rounding=ROUND_HALF_UP)

        return ConversionResult(
            original_amount=amount,
            converted_amount=converted,
            from_currency=from_code,
            to_currency=to_code,
            rate=rate,
            source=snapshot.source,
            rate_date=snapshot.last_updated,
            is_stale=self._monitor.is_stale(snapshot),
        )

    @staticmethod
    def transparency_text(result: ConversionResult) -> str:
        return result.display_text

    def format_amount(
        self,
        amount: AmountLike,
        code: str,
        show_symbol: bool = True,
    ) -> str:
        """
        Human-readable amount, e.g. "$1,234.56" or "1,234.56 USD".
        """
        currency = self._registry.get(code)
        value = _to_decimal(amount).quantize(currency.quantum, rounding=ROUND_HALF_UP)
        digits = currency.minor_unit_digits
        text = f"{abs(value):,.{digits}f}"
        sign = "-" if value < 0 else ""

        if show_symbol:
            return f"{sign}{currency.symbol}{text}"
        return f"{sign}{text} {currency.code}"

    def to_minor_units(self, amount: AmountLike, code: str) -> int:
        """Amount as an integer count of minor units (cents, paise...)."""
        digits = self._registry.get(code).minor_unit_digits
        scaled = _to_decimal(amount).scaleb(digits)
        return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def from_minor_units(self, units: int, code: str) -> Decimal:
        digits = self._registry.get(code).minor_unit_digits
        return Decimal(units).scaleb(-digits)
