"""Currency registry package."""

from currency_engine.registry.currencies import (
    FALLBACK_CURRENCIES,
    CurrencyRegistry,
    UnsupportedCurrencyError,
)

__all__ = ["CurrencyRegistry", "FALLBACK_CURRENCIES", "UnsupportedCurrencyError"]
