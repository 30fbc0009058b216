"""Audit logging package."""

from currency_engine.audit.logger import ConversionAuditLog

__all__ = ["ConversionAuditLog"]
