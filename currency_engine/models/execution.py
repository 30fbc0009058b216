"""
Execution Models

Request and result shapes for the execution engine.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from currency_engine.models.audit import ExecutionAuditRecord
from currency_engine.models.cases import ConversionCase, OperationKind


class ExecutionRequest(BaseModel):
    """
    A financial operation that needs its amounts reconciled.

    Codes are normalised to upper case; whether they are supported is checked
    by the engine against the registry, not here.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        description="Amount in the operation currency"
    )
    currency: str = Field(
        ...,
        description="Currency the amount is denominated in"
    )
    account_id: str = Field(
        ...,
        min_length=1,
        description="Account the operation applies to"
    )
    account_currency: str
    primary_currency: str
    operation_kind: OperationKind = OperationKind.TRANSACTION
    entity_type: str = Field(
        default="transaction",
        min_length=1,
        max_length=50,
        description="Domain entity that owns the operation (transaction, goal, bill...)"
    )
    entity_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="ID of the owning domain entity"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )

    @field_validator('amount', mode='before')
    @classmethod
    def reject_float_amount(cls, v):
        """Amounts arrive as Decimal, int or str, matching the calculator."""
        if isinstance(v, float):
            raise ValueError("amount must be Decimal, int or str, not float")
        return v

    @field_validator('currency', 'account_currency', 'primary_currency')
    @classmethod
    def upper_codes(cls, v: str) -> str:
        return v.upper()


class ExecutionResult(BaseModel):
    """
    Result of executing one request.

    Either fully successful (both amounts and the audit record present)
    or a failure with an error; never partial.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    operation_id: UUID = Field(default_factory=uuid4)
    account_amount: Optional[Decimal] = None
    account_currency: Optional[str] = None
    primary_amount: Optional[Decimal] = None
    primary_currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    conversion_case: Optional[ConversionCase] = None
    audit_data: Optional[ExecutionAuditRecord] = None
    error: Optional[str] = None
    error_type: Optional[str] = Field(
        default=None,
        description="Exception class name for failed executions"
    )
    execution_time_ms: Optional[float] = None
