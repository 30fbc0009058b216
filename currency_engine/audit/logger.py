"""
Conversion Audit Log

DESIGN DECISION: Every executed conversion is logged.
This provides:
1. Complete traceability of stored amounts
2. The rate, source and staleness behind every number the user sees
3. Historical rate lookups without re-fetching from a provider

The audit log:
- Is async to not block main flow
- Gracefully handles failures (a storage failure never fails an execution)
- Is append-only: there is no update or delete
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from currency_engine.models.audit import ExecutionAuditRecord
from currency_engine.services.storage import (
    AuditStorageInterface,
    RateHistoryStorageInterface,
    StorageError,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class ConversionAuditLog:
    """
    Central conversion audit service.

    Logs records both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        history: Optional[RateHistoryStorageInterface] = None,
        base_currency: str = "USD",
    ):
        """
        Initialize the audit log.

        Args:
            storage: Storage backend for records.
                    If None, only logs locally.
            history: Rate history used for historical_rate lookups.
            base_currency: Currency the rate history is expressed against.
        """
        self._storage = storage
        self._history = history
        self._base_currency = base_currency.upper()
        self._logger = structlog.get_logger()

    async def append(self, record: ExecutionAuditRecord) -> bool:
        """
        Log an audit record.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = record.to_log_dict()
        if record.is_stale:
            self._logger.warning("audit_record", **log_dict)
        else:
            self._logger.info("audit_record", **log_dict)

        if self._storage is not None:
            try:
                return await self._storage.append_record(record)
            except StorageError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    operation_id=str(record.operation_id),
                )
                return False

        return True

    async def recent_for(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 20,
    ) -> list[ExecutionAuditRecord]:
        """Records for one entity, newest first."""
        if self._storage is None:
            return []
        return await self._storage.get_records_by_entity(entity_type, entity_id, limit=limit)

    async def recent(self, limit: int = 100) -> list[ExecutionAuditRecord]:
        """Most recent records across all entities, newest first."""
        if self._storage is None:
            return []
        return await self._storage.get_recent_records(limit=limit)

    async def _base_leg(self, code: str, day: date) -> Optional[Decimal]:
        if code == self._base_currency:
            return Decimal("1")
        row = await self._history.get_rate_on(self._base_currency, code, day)
        return row.rate if row else None

    async def _rate_on(self, from_code: str, to_code: str, day: date) -> Optional[Decimal]:
        from_leg = await self._base_leg(from_code, day)
        if from_leg is None:
            return None
        to_leg = await self._base_leg(to_code, day)
        if to_leg is None:
            return None
        return to_leg / from_leg

    async def historical_rate(
        self,
        from_code: str,
        to_code: str,
        on_date: date,
    ) -> Optional[Decimal]:
        """
        Rate recorded for a pair on a given day.

        Falls back to the previous day when the day itself has no rows.
        Cross rates go through the base currency.
        """
        from_code = from_code.upper()
        to_code = to_code.upper()
        if from_code == to_code:
            return Decimal("1")
        if self._history is None:
            return None

        try:
            for day in (on_date, on_date - timedelta(days=1)):
                rate = await self._rate_on(from_code, to_code, day)
                if rate is not None:
                    return rate
        except StorageError as e:
            self._logger.error(
                "historical_rate_lookup_failed",
                error=str(e),
                from_currency=from_code,
                to_currency=to_code,
                on_date=on_date.isoformat(),
            )
        return None
