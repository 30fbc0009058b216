"""
Data Models Package

This package contains all Pydantic models used by the currency engine.
All data flowing through the engine must conform to these schemas.
"""

from currency_engine.models.audit import AUDIT_COLUMNS, ExecutionAuditRecord
from currency_engine.models.cases import ConversionCase, OperationKind
from currency_engine.models.currency import (
    ConversionResult,
    ExchangeRate,
    RateSnapshot,
    RateSource,
    SupportedCurrency,
    utc_now,
)
from currency_engine.models.execution import ExecutionRequest, ExecutionResult

__all__ = [
    # Currency models
    "ConversionResult",
    "ExchangeRate",
    "RateSnapshot",
    "RateSource",
    "SupportedCurrency",
    "utc_now",
    # Execution models
    "ConversionCase",
    "ExecutionRequest",
    "ExecutionResult",
    "OperationKind",
    # Audit models
    "AUDIT_COLUMNS",
    "ExecutionAuditRecord",
]
