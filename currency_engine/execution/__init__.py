"""Execution engine package."""

from currency_engine.execution.engine import (
    ExecutionEngine,
    InvalidAmountError,
    classify_conversion_case,
)

__all__ = ["ExecutionEngine", "InvalidAmountError", "classify_conversion_case"]
