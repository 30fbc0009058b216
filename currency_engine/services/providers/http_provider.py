"""
Rate Providers

DESIGN DECISION: Providers return raw Decimal tables and nothing else.
Deciding what a failure means for the working snapshot is the acquisition
service's job, so every failure here surfaces as RateFetchError.

Supported payload shapes:
- {"rates": {"EUR": 0.92, ...}}              (exchangerate-api v4, open.er-api)
- {"conversion_rates": {"EUR": 0.92, ...}}   (exchangerate-api v6)
"""

import asyncio
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Sequence

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from currency_engine.config import RateProviderSettings
from currency_engine.services.providers.interface import (
    RateFetchError,
    RateProviderInterface,
)


logger = structlog.get_logger()

# Precision stored for fetched rates
RATE_QUANTUM = Decimal("0.000001")


def parse_rates_payload(provider: str, payload) -> dict[str, Decimal]:
    """
    Extract a clean {code: rate} table from a provider payload.

    Non-numeric and non-positive entries are dropped. Rates are
    quantized to 6 decimal places.
    """
    if not isinstance(payload, dict):
        raise RateFetchError(provider, "payload is not a JSON object")

    if payload.get("result") == "error":
        raise RateFetchError(
            provider,
            f"provider reported error: {payload.get('error-type', 'unknown')}",
        )

    raw = payload.get("rates")
    if raw is None:
        raw = payload.get("conversion_rates")
    if not isinstance(raw, dict):
        raise RateFetchError(provider, "payload has no rates table")

    rates: dict[str, Decimal] = {}
    for code, value in raw.items():
        if not isinstance(code, str) or len(code) != 3 or not code.isalpha():
            continue
        if isinstance(value, bool) or value is None:
            continue
        try:
            rate = Decimal(str(value))
        except (InvalidOperation, ValueError):
            continue
        if not rate.is_finite() or rate <= 0:
            continue
        rate = rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
        if rate <= 0:
            continue
        rates[code.upper()] = rate

    if not rates:
        raise RateFetchError(provider, "payload contained no usable rates")
    return rates


class HttpRateProvider(RateProviderInterface):
    """
    Fetches latest rates from a JSON HTTP endpoint.

    Transport errors (connection failures, timeouts) are retried with
    exponential backoff. HTTP status errors are not retried.

    Each attempt is bounded by timeout_seconds, including transports that
    do not enforce httpx timeouts themselves, so a stalled provider gives
    up in time for the next provider in a chain.
    """

    def __init__(
        self,
        url_template: str,
        name: str = "exchangerate-api",
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url_template = url_template
        self._name = name
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls,
        settings: RateProviderSettings,
        url_template: Optional[str] = None,
        name: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "HttpRateProvider":
        return cls(
            url_template=url_template or settings.url_template,
            name=name or settings.name,
            api_key=settings.api_key,
            timeout_seconds=settings.timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            client=client,
        )

    @property
    def name(self) -> str:
        return self._name

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._client

    async def _get(self, url: str) -> httpx.Response:
        params = {"access_key": self._api_key} if self._api_key else None
        client = self._get_client()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_backoff_seconds, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                try:
                    return await asyncio.wait_for(
                        client.get(url, params=params),
                        timeout=self._timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    raise httpx.ReadTimeout(
                        f"no response within {self._timeout_seconds}s"
                    )

    async def fetch_latest(self, base_currency: str) -> dict[str, Decimal]:
        url = self._url_template.format(base=base_currency.upper())

        try:
            response = await self._get(url)
        except httpx.TimeoutException as e:
            raise RateFetchError(self._name, f"request timed out: {e}")
        except httpx.TransportError as e:
            raise RateFetchError(self._name, f"transport error: {e}")

        if not response.is_success:
            raise RateFetchError(
                self._name,
                f"unexpected status {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RateFetchError(self._name, f"malformed JSON: {e}")

        rates = parse_rates_payload(self._name, payload)
        logger.debug(
            "provider_rates_fetched",
            provider=self._name,
            base_currency=base_currency,
            count=len(rates),
        )
        return rates

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class FallbackChainProvider(RateProviderInterface):
    """
    Tries providers in priority order.

    name reports the provider that served the last successful fetch.
    """

    def __init__(self, providers: Sequence[RateProviderInterface]):
        if not providers:
            raise ValueError("FallbackChainProvider needs at least one provider")
        self._providers = list(providers)
        self._last_success: Optional[RateProviderInterface] = None

    @property
    def name(self) -> str:
        return (self._last_success or self._providers[0]).name

    @property
    def providers(self) -> list[RateProviderInterface]:
        return list(self._providers)

    async def fetch_latest(self, base_currency: str) -> dict[str, Decimal]:
        errors: list[str] = []
        for provider in self._providers:
            try:
                rates = await provider.fetch_latest(base_currency)
            except RateFetchError as e:
                logger.warning(
                    "provider_failed",
                    provider=provider.name,
                    error=str(e),
                )
                errors.append(str(e))
                continue
            self._last_success = provider
            return rates

        raise RateFetchError(
            "provider-chain",
            "all providers failed: " + "; ".join(errors),
        )

    async def aclose(self) -> None:
        for provider in self._providers:
            await provider.aclose()


class StaticRateProvider(RateProviderInterface):
    """
    Serves a fixed rate table.

    Rates are expressed against table_base and rebased on request.
    """

    def __init__(
        self,
        rates: dict[str, Decimal],
        table_base: str = "USD",
        name: str = "static",
    ):
        self._table_base = table_base.upper()
        self._rates = {code.upper(): Decimal(rate) for code, rate in rates.items()}
        self._rates[self._table_base] = Decimal("1")
        self._name = name
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def fetch_latest(self, base_currency: str) -> dict[str, Decimal]:
        self.calls += 1
        base = base_currency.upper()
        if base == self._table_base:
            return dict(self._rates)

        base_rate = self._rates.get(base)
        if base_rate is None:
            raise RateFetchError(self._name, f"no rate for base {base}")
        return {
            code: (rate / base_rate).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
            for code, rate in self._rates.items()
        }
