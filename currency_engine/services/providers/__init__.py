"""
Rate Provider Package

External sources of the latest exchange rates.
"""

from currency_engine.services.providers.interface import (
    RateFetchError,
    RateProviderInterface,
)
from currency_engine.services.providers.http_provider import (
    FallbackChainProvider,
    HttpRateProvider,
    StaticRateProvider,
    parse_rates_payload,
)

__all__ = [
    "FallbackChainProvider",
    "HttpRateProvider",
    "RateFetchError",
    "RateProviderInterface",
    "StaticRateProvider",
    "parse_rates_payload",
]
