"""
Audit Models for the Currency Engine

Every executed operation produces exactly one audit record.
This provides:
1. Complete traceability of how each stored amount was produced
2. Historical context (rate, source, staleness) for transparency display
3. Ability to reconstruct history without re-running conversions

DESIGN DECISION: Audit records are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from currency_engine.models.cases import ConversionCase, OperationKind
from currency_engine.models.currency import RateSource, utc_now


# Column order used by tabular storage backends
AUDIT_COLUMNS = [
    "operation_id",
    "timestamp",
    "operation_kind",
    "entity_type",
    "entity_id",
    "account_id",
    "original_amount",
    "original_currency",
    "account_amount",
    "account_currency",
    "primary_amount",
    "primary_currency",
    "exchange_rate",
    "account_rate",
    "primary_rate",
    "rate_source",
    "rate_date",
    "is_stale",
    "conversion_case",
    "details_json",
]


class ExecutionAuditRecord(BaseModel):
    """
    Immutable record of one executed conversion.

    Owned by the conversion audit log; domain entities reference it
    by operation_id for display.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    operation_id: UUID = Field(
        default_factory=uuid4,
        description="Unique operation identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the operation was executed (UTC)"
    )

    # Context - what entity is this about?
    operation_kind: OperationKind = OperationKind.TRANSACTION
    entity_type: str = Field(
        ...,
        description="Type of entity (e.g., 'transaction', 'goal', 'bill')"
    )
    entity_id: str = Field(
        ...,
        description="ID of the entity this record relates to"
    )
    account_id: Optional[str] = None

    # Amounts
    original_amount: Decimal
    original_currency: str
    account_amount: Decimal
    account_currency: str
    primary_amount: Decimal
    primary_currency: str

    # Rates used
    exchange_rate: Decimal = Field(
        ...,
        description="Headline rate for the operation (see account_rate / primary_rate)"
    )
    account_rate: Decimal = Field(
        ...,
        description="Rate of the operation -> account leg (1 when no conversion)"
    )
    primary_rate: Decimal = Field(
        ...,
        description="Rate of the operation -> primary leg (1 when no conversion)"
    )
    rate_source: RateSource
    rate_date: Optional[datetime] = None
    is_stale: bool = False

    conversion_case: ConversionCase

    # Additional free-form context (description, ...)
    details: dict[str, str] = Field(default_factory=dict)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "operation_id": str(self.operation_id),
            "timestamp": self.timestamp.isoformat(),
            "operation_kind": self.operation_kind.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "account_id": self.account_id,
            "original_amount": str(self.original_amount),
            "original_currency": self.original_currency,
            "account_amount": str(self.account_amount),
            "account_currency": self.account_currency,
            "primary_amount": str(self.primary_amount),
            "primary_currency": self.primary_currency,
            "exchange_rate": str(self.exchange_rate),
            "rate_source": self.rate_source.value,
            "rate_date": self.rate_date.isoformat() if self.rate_date else None,
            "is_stale": self.is_stale,
            "conversion_case": self.conversion_case.value,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in AUDIT_COLUMNS order.
        """
        return [
            str(self.operation_id),
            self.timestamp.isoformat(),
            self.operation_kind.value,
            self.entity_type,
            self.entity_id,
            self.account_id or "",
            str(self.original_amount),
            self.original_currency,
            str(self.account_amount),
            self.account_currency,
            str(self.primary_amount),
            self.primary_currency,
            str(self.exchange_rate),
            str(self.account_rate),
            str(self.primary_rate),
            self.rate_source.value,
            self.rate_date.isoformat() if self.rate_date else "",
            str(self.is_stale),
            self.conversion_case.value,
            json.dumps(self.details) if self.details else "",
        ]
