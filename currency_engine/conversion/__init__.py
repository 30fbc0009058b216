"""Conversion calculator package."""

from currency_engine.conversion.calculator import (
    ConversionCalculator,
    ConversionUnavailableError,
)

__all__ = ["ConversionCalculator", "ConversionUnavailableError"]
