"""
Currency and Rate Models

These models define the reference data and rate values flowing through the engine.
They are designed to:
1. Keep every amount and rate as Decimal (never float)
2. Be immutable once created
3. Carry full transparency about where a converted number came from

DESIGN DECISION: Staleness is never stored on a snapshot.
It is derived from last_updated by the staleness monitor.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class RateSource(str, Enum):
    """
    Where a rate came from.

    SAME_CURRENCY only ever appears on a ConversionResult; it is never stored.
    """
    API = "api"
    MANUAL = "manual"
    FALLBACK = "fallback"
    SAME_CURRENCY = "same_currency"


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def _normalize_code(value: str) -> str:
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"Currency code must be exactly 3 letters, got '{value}'")
    return code


# =============================================================================
# REFERENCE DATA
# =============================================================================

class SupportedCurrency(BaseModel):
    """
    A currency the engine can convert to and from.

    Created when the registry loads. Never deleted, only deactivated.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    code: str = Field(
        ...,
        description="ISO-4217-like three letter code"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    symbol: str = Field(
        ...,
        min_length=1,
        max_length=10,
        description="Display symbol"
    )
    minor_unit_digits: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Number of decimal places of the minor unit (JPY = 0)"
    )
    is_active: bool = True
    flag_emoji: Optional[str] = None

    @field_validator('code')
    @classmethod
    def validate_code(cls, v: str) -> str:
        return _normalize_code(v)

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal('0.01')."""
        return Decimal(1).scaleb(-self.minor_unit_digits)

    def deactivated(self) -> "SupportedCurrency":
        return self.model_copy(update={"is_active": False})


# =============================================================================
# RATES
# =============================================================================

class ExchangeRate(BaseModel):
    """
    A single persisted rate, base currency to target currency.

    Historical rates are never mutated: each refresh inserts new rows.
    """
    model_config = ConfigDict(frozen=True)

    from_currency: str = Field(
        ...,
        description="Base currency the rate is expressed against"
    )
    to_currency: str
    rate: Decimal = Field(
        ...,
        gt=0,
        description="Units of to_currency per one unit of from_currency"
    )
    source: RateSource
    fetched_at: datetime = Field(default_factory=utc_now)
    provider: Optional[str] = Field(
        default=None,
        description="Provider name for api rates (e.g. exchangerate-api)"
    )

    @field_validator('from_currency', 'to_currency')
    @classmethod
    def validate_codes(cls, v: str) -> str:
        return _normalize_code(v)

    @field_validator('source')
    @classmethod
    def validate_source(cls, v: RateSource) -> RateSource:
        if v == RateSource.SAME_CURRENCY:
            raise ValueError("same_currency is not a storable rate source")
        return v


class RateSnapshot(BaseModel):
    """
    The rate store's working set.

    All rates are relative to base_currency. A snapshot is replaced as a whole,
    never updated in place. last_updated is None when the rates did not come from
    a provider or a user (static fallback table).
    """
    model_config = ConfigDict(frozen=True)

    base_currency: str = "USD"
    rates: dict[str, Decimal] = Field(default_factory=dict)
    last_updated: Optional[datetime] = None
    source: RateSource = RateSource.FALLBACK

    @model_validator(mode='before')
    @classmethod
    def pin_base_rate(cls, data):
        """The base currency is always worth exactly one base unit."""
        if isinstance(data, dict):
            base = _normalize_code(str(data.get("base_currency") or "USD"))
            rates = {
                str(code).strip().upper(): rate
                for code, rate in (data.get("rates") or {}).items()
            }
            rates[base] = Decimal("1")
            data = {**data, "base_currency": base, "rates": rates}
        return data

    @field_validator('rates')
    @classmethod
    def validate_rates(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        for code, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Rate for {code} must be positive, got {rate}")
        return v

    def has(self, code: str) -> bool:
        return code.upper() in self.rates

    def rate_between(self, from_code: str, to_code: str) -> Optional[Decimal]:
        """
        Cross rate via the base currency.

        Returns None when either side is missing from the snapshot.
        """
        from_code = from_code.upper()
        to_code = to_code.upper()
        if from_code == to_code:
            return Decimal("1")
        from_rate = self.rates.get(from_code)
        to_rate = self.rates.get(to_code)
        if from_rate is None or to_rate is None:
            return None
        return to_rate / from_rate


# =============================================================================
# CONVERSION OUTPUT
# =============================================================================

class ConversionResult(BaseModel):
    """
    Outcome of converting one amount.

    Pure value: carries how the number was produced so callers can show it.
    """
    model_config = ConfigDict(frozen=True)

    original_amount: Decimal
    converted_amount: Decimal
    from_currency: str
    to_currency: str
    rate: Decimal
    source: RateSource
    rate_date: Optional[datetime] = None
    is_stale: bool = False

    @property
    def is_identity(self) -> bool:
        return self.source == RateSource.SAME_CURRENCY

    @property
    def display_text(self) -> str:
        """
        Transparency line, e.g. "Converted using rate 0.920000 (api) on 2024-03-01".
        """
        if self.is_identity:
            return "Same currency - no conversion needed"
        when = self.rate_date.date().isoformat() if self.rate_date else "unknown date"
        text = f"Converted using rate {self.rate:.6f} ({self.source.value}) on {when}"
        if self.is_stale:
            text += " (stale)"
        return text
