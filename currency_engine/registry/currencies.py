"""
Currency Registry

Reference data for every currency the engine can convert.

DESIGN DECISION: The registry is never empty. If the configured source
fails or returns nothing, a hard-coded minimal set is used, so conversions
keep working on a fresh install or without storage.
"""

from typing import Iterable, Optional

import structlog

from currency_engine.models.currency import SupportedCurrency
from currency_engine.services.storage import CurrencySourceInterface, StorageError


logger = structlog.get_logger()


class UnsupportedCurrencyError(ValueError):
    """Currency code is unknown or inactive."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unsupported currency: {code}")


FALLBACK_CURRENCIES: tuple[SupportedCurrency, ...] = (
    SupportedCurrency(code="USD", name="US Dollar", symbol="$", flag_emoji="🇺🇸"),
    SupportedCurrency(code="INR", name="Indian Rupee", symbol="₹", flag_emoji="🇮🇳"),
    SupportedCurrency(code="EUR", name="Euro", symbol="€", flag_emoji="🇪🇺"),
    SupportedCurrency(code="GBP", name="British Pound", symbol="£", flag_emoji="🇬🇧"),
    SupportedCurrency(
        code="JPY", name="Japanese Yen", symbol="¥", minor_unit_digits=0, flag_emoji="🇯🇵"
    ),
    SupportedCurrency(code="CNY", name="Chinese Yuan", symbol="¥", flag_emoji="🇨🇳"),
    SupportedCurrency(code="MYR", name="Malaysian Ringgit", symbol="RM", flag_emoji="🇲🇾"),
    SupportedCurrency(code="SGD", name="Singapore Dollar", symbol="S$", flag_emoji="🇸🇬"),
    SupportedCurrency(code="AED", name="UAE Dirham", symbol="د.إ", flag_emoji="🇦🇪"),
    SupportedCurrency(code="NZD", name="New Zealand Dollar", symbol="NZ$", flag_emoji="🇳🇿"),
    SupportedCurrency(code="ZAR", name="South African Rand", symbol="R", flag_emoji="🇿🇦"),
    SupportedCurrency(code="CAD", name="Canadian Dollar", symbol="C$", flag_emoji="🇨🇦"),
    SupportedCurrency(code="LKR", name="Sri Lankan Rupee", symbol="Rs", flag_emoji="🇱🇰"),
    SupportedCurrency(code="AUD", name="Australian Dollar", symbol="A$", flag_emoji="🇦🇺"),
)

DEFAULT_POPULAR_ORDER = ("EUR", "GBP", "INR", "JPY", "CNY", "CAD", "AUD")


class CurrencyRegistry:
    """
    Supported currencies, keyed by upper-case code.

    Lookups are case-insensitive. Currencies are never removed,
    only deactivated.
    """

    def __init__(
        self,
        base_currency: str = "USD",
        currencies: Optional[Iterable[SupportedCurrency]] = None,
        popular_order: Iterable[str] = DEFAULT_POPULAR_ORDER,
        popular_limit: int = 8,
    ):
        self._base_currency = base_currency.upper()
        self._popular_order = [code.upper() for code in popular_order]
        self._popular_limit = popular_limit
        self._currencies: dict[str, SupportedCurrency] = {}
        self._install(currencies or FALLBACK_CURRENCIES)

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def _install(self, currencies: Iterable[SupportedCurrency]) -> None:
        table = {currency.code: currency for currency in currencies}

        if self._base_currency not in table or not table[self._base_currency].is_active:
            fallback = {c.code: c for c in FALLBACK_CURRENCIES}
            table[self._base_currency] = fallback.get(
                self._base_currency,
                SupportedCurrency(
                    code=self._base_currency,
                    name=self._base_currency,
                    symbol=self._base_currency,
                ),
            )

        self._currencies = table

    async def load(self, source: CurrencySourceInterface) -> int:
        """
        Load currencies from a source, falling back to the built-in set.

        Returns:
            Number of active currencies after loading
        """
        try:
            loaded = await source.load_currencies()
        except StorageError as e:
            logger.warning(
                "currency_source_failed",
                error=str(e),
                fallback_count=len(FALLBACK_CURRENCIES),
            )
            loaded = []

        if not loaded:
            logger.info("using_fallback_currencies", count=len(FALLBACK_CURRENCIES))
            loaded = list(FALLBACK_CURRENCIES)

        self._install(loaded)
        active = len(self.list_active())
        logger.info("currencies_loaded", active=active, total=len(self._currencies))
        return active

    def list_active(self) -> list[SupportedCurrency]:
        return sorted(
            (c for c in self._currencies.values() if c.is_active),
            key=lambda c: c.code,
        )

    def find(self, code: str) -> Optional[SupportedCurrency]:
        """Active currency for a code, or None."""
        currency = self._currencies.get(code.strip().upper())
        if currency is None or not currency.is_active:
            return None
        return currency

    def get(self, code: str) -> SupportedCurrency:
        """
        Active currency for a code.

        Raises:
            UnsupportedCurrencyError: If the code is unknown or inactive
        """
        currency = self.find(code)
        if currency is None:
            raise UnsupportedCurrencyError(code)
        return currency

    def is_supported(self, code: str) -> bool:
        return self.find(code) is not None

    def search(self, query: str) -> list[SupportedCurrency]:
        """Case-insensitive substring match on code or name."""
        needle = query.strip().lower()
        if not needle:
            return self.list_active()
        return [
            c for c in self.list_active()
            if needle in c.code.lower() or needle in c.name.lower()
        ]

    def popular_subset(self) -> list[SupportedCurrency]:
        """
        Short list for currency pickers.

        Base currency first, then the configured priority order, then the
        remaining active currencies by code until the limit is reached.
        """
        result: list[SupportedCurrency] = []
        seen: set[str] = set()

        def take(code: str) -> None:
            if len(result) >= self._popular_limit or code in seen:
                return
            currency = self.find(code)
            if currency is not None:
                result.append(currency)
                seen.add(code)

        take(self._base_currency)
        for code in self._popular_order:
            take(code)
        for currency in self.list_active():
            take(currency.code)
        return result

    def deactivate(self, code: str) -> SupportedCurrency:
        """
        Mark a currency inactive. The base currency cannot be deactivated.

        Raises:
            UnsupportedCurrencyError: If the code is unknown
        """
        key = code.strip().upper()
        currency = self._currencies.get(key)
        if currency is None:
            raise UnsupportedCurrencyError(code)
        if key == self._base_currency:
            raise ValueError(f"Base currency {key} cannot be deactivated")

        deactivated = currency.deactivated()
        self._currencies[key] = deactivated
        logger.info("currency_deactivated", code=key)
        return deactivated
