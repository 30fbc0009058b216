"""
Abstract Rate Provider Interface

DESIGN DECISION: The acquisition service only knows this interface.
HTTP providers, provider chains and static tables are interchangeable,
which keeps tests free of network calls.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class RateFetchError(Exception):
    """A provider could not deliver a usable rate table."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class RateProviderInterface(ABC):
    """
    Source of the latest rates relative to a base currency.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name recorded on persisted rates."""
        pass

    @abstractmethod
    async def fetch_latest(self, base_currency: str) -> dict[str, Decimal]:
        """
        Fetch the latest rates.

        Args:
            base_currency: Code the returned rates are expressed against

        Returns:
            Mapping of currency code to units per one base unit

        Raises:
            RateFetchError: On transport, status or payload failures
        """
        pass

    async def aclose(self) -> None:
        """Release any held resources."""
        return None
