"""
Google Sheets Backend

DESIGN DECISION: One spreadsheet holds three worksheets:
    ExchangeRates        daily rate history, one row per pair per day
    ConversionAudit      append-only execution records
    SupportedCurrencies  editable currency list for the registry

Users can read the rate history and audit trail directly in Sheets and
edit the currency list without a deploy.

TRADEOFFS:
- Whole-sheet reads on every lookup; fine at personal-finance volume
- The one-rate-per-day rule is enforced here, not by the sheet
- Malformed rows (hand edits) are skipped with a warning, never fatal

gspread is synchronous, so every sheet call runs in a worker thread
to keep the event loop free.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from currency_engine.config import GoogleSheetsSettings, get_settings
from currency_engine.models.audit import AUDIT_COLUMNS, ExecutionAuditRecord
from currency_engine.models.cases import ConversionCase, OperationKind
from currency_engine.models.currency import (
    ExchangeRate,
    RateSource,
    SupportedCurrency,
)
from currency_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CurrencySourceInterface,
    PersistenceError,
    RateHistoryStorageInterface,
    StorageError,
)


logger = structlog.get_logger()


# Column mappings for ExchangeRates sheet
RATE_COLUMNS = [
    "from_currency",
    "to_currency",
    "rate",
    "source",
    "fetched_at",
    "provider",
]

# Column mappings for SupportedCurrencies sheet
CURRENCY_COLUMNS = [
    "code",
    "name",
    "symbol",
    "minor_unit_digits",
    "is_active",
    "flag_emoji",
]

# Transient API failures worth another attempt
_transient_api_errors = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets
        self._sheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row on first use."""
        if title in self._sheets:
            return self._sheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title)

        self._sheets[title] = sheet
        return sheet

    def get_rates_sheet(self) -> gspread.Worksheet:
        return self.get_or_create_sheet(self._settings.rates_sheet_name, RATE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def get_currencies_sheet(self) -> gspread.Worksheet:
        return self.get_or_create_sheet(
            self._settings.currencies_sheet_name,
            CURRENCY_COLUMNS,
            rows=200,
        )

    @_transient_api_errors
    def append_row(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @_transient_api_errors
    def append_rows(self, sheet: gspread.Worksheet, rows: list[list]) -> None:
        sheet.append_rows(rows, value_input_option="RAW")

    @_transient_api_errors
    def read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All data rows (header excluded)."""
        return sheet.get_all_values()[1:]


class GoogleSheetsRateHistoryStorage(RateHistoryStorageInterface):
    """
    Google Sheets implementation of the rate history.

    One row per (from, to, day). Later fetches on the same day are ignored.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _rate_to_row(self, rate: ExchangeRate) -> list:
        return [
            rate.from_currency,
            rate.to_currency,
            str(rate.rate),
            rate.source.value,
            rate.fetched_at.isoformat(),
            rate.provider or "",
        ]

    def _row_to_rate(self, row: list) -> ExchangeRate:
        return ExchangeRate(
            from_currency=_safe_get(row, 0),
            to_currency=_safe_get(row, 1),
            rate=Decimal(_safe_get(row, 2)),
            source=RateSource(_safe_get(row, 3)),
            fetched_at=datetime.fromisoformat(_safe_get(row, 4)),
            provider=_safe_get(row, 5) or None,
        )

    def _load_rates(self) -> list[ExchangeRate]:
        sheet = self._client.get_rates_sheet()
        rates = []
        for row in self._client.read_rows(sheet):
            if not row or not row[0]:
                continue
            try:
                rates.append(self._row_to_rate(row))
            except (ValueError, ArithmeticError):
                logger.warning("malformed_rate_row_skipped", row=row)
        return rates

    def _upsert_many(self, rates: Sequence[ExchangeRate]) -> int:
        """One sheet read and at most one append for the whole batch."""
        recorded = {
            (r.from_currency, r.to_currency, r.fetched_at.date())
            for r in self._load_rates()
        }
        rows = []
        for rate in rates:
            key = (rate.from_currency, rate.to_currency, rate.fetched_at.date())
            if key in recorded:
                continue
            recorded.add(key)
            rows.append(self._rate_to_row(rate))

        if rows:
            self._client.append_rows(self._client.get_rates_sheet(), rows)
        return len(rows)

    async def upsert_rates(self, rates: Sequence[ExchangeRate]) -> int:
        """Insert the rates whose pair was not yet recorded that day."""
        try:
            return await asyncio.to_thread(self._upsert_many, list(rates))
        except StorageError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save rates: {e}")

    async def upsert_rate(self, rate: ExchangeRate) -> bool:
        """Insert a rate unless the pair was already recorded that day."""
        return await self.upsert_rates([rate]) == 1

    async def get_rate_on(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
    ) -> Optional[ExchangeRate]:
        try:
            rates = await asyncio.to_thread(self._load_rates)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read rates: {e}")

        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        for rate in rates:
            if (
                rate.from_currency == from_currency
                and rate.to_currency == to_currency
                and rate.fetched_at.date() == day
            ):
                return rate
        return None

    async def get_latest_rates(self, base_currency: str) -> list[ExchangeRate]:
        try:
            rates = await asyncio.to_thread(self._load_rates)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read rates: {e}")

        base = base_currency.upper()
        latest: dict[str, ExchangeRate] = {}
        for rate in rates:
            if rate.from_currency != base:
                continue
            current = latest.get(rate.to_currency)
            if current is None or rate.fetched_at > current.fetched_at:
                latest[rate.to_currency] = rate
        return sorted(latest.values(), key=lambda r: r.to_currency)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit record storage.

    Audit records are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_record(self, row: list) -> ExecutionAuditRecord:
        """Convert a spreadsheet row to an ExecutionAuditRecord."""
        rate_date = _safe_get(row, 16)
        details = _safe_get(row, 19)
        return ExecutionAuditRecord(
            operation_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            operation_kind=OperationKind(_safe_get(row, 2)),
            entity_type=_safe_get(row, 3),
            entity_id=_safe_get(row, 4),
            account_id=_safe_get(row, 5) or None,
            original_amount=Decimal(_safe_get(row, 6)),
            original_currency=_safe_get(row, 7),
            account_amount=Decimal(_safe_get(row, 8)),
            account_currency=_safe_get(row, 9),
            primary_amount=Decimal(_safe_get(row, 10)),
            primary_currency=_safe_get(row, 11),
            exchange_rate=Decimal(_safe_get(row, 12)),
            account_rate=Decimal(_safe_get(row, 13, "1")),
            primary_rate=Decimal(_safe_get(row, 14, "1")),
            rate_source=RateSource(_safe_get(row, 15)),
            rate_date=datetime.fromisoformat(rate_date) if rate_date else None,
            is_stale=_safe_get(row, 17).lower() == "true",
            conversion_case=ConversionCase(_safe_get(row, 18)),
            details=json.loads(details) if details else {},
        )

    def _load_records(self) -> list[ExecutionAuditRecord]:
        sheet = self._client.get_audit_sheet()
        records = []
        for row in self._client.read_rows(sheet):
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_record(row))
            except (ValueError, ArithmeticError):
                logger.warning("malformed_audit_row_skipped", operation_id=row[0])
        return records

    def _append(self, record: ExecutionAuditRecord) -> None:
        self._client.append_row(self._client.get_audit_sheet(), record.to_sheets_row())

    async def append_record(self, record: ExecutionAuditRecord) -> bool:
        """Append an audit record."""
        try:
            await asyncio.to_thread(self._append, record)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to write audit record: {e}")

    async def get_records_by_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 20,
    ) -> list[ExecutionAuditRecord]:
        """Get records by entity."""
        try:
            records = await asyncio.to_thread(self._load_records)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit records: {e}")

        matches = [
            r for r in records
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:limit]

    async def get_recent_records(
        self,
        limit: int = 100,
    ) -> list[ExecutionAuditRecord]:
        """Get recent records."""
        try:
            records = await asyncio.to_thread(self._load_records)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit records: {e}")

        # Sort newest first
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit]


class GoogleSheetsCurrencySource(CurrencySourceInterface):
    """Reads the SupportedCurrencies worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_currency(self, row: list) -> SupportedCurrency:
        return SupportedCurrency(
            code=_safe_get(row, 0),
            name=_safe_get(row, 1),
            symbol=_safe_get(row, 2),
            minor_unit_digits=int(_safe_get(row, 3, "2")),
            is_active=_safe_get(row, 4, "true").lower() == "true",
            flag_emoji=_safe_get(row, 5) or None,
        )

    def _load(self) -> list[SupportedCurrency]:
        sheet = self._client.get_currencies_sheet()
        currencies = []
        for row in self._client.read_rows(sheet):
            if not row or not row[0]:
                continue
            try:
                currencies.append(self._row_to_currency(row))
            except ValueError:
                logger.warning("malformed_currency_row_skipped", code=row[0])
        return currencies

    async def load_currencies(self) -> list[SupportedCurrency]:
        try:
            return await asyncio.to_thread(self._load)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load currencies: {e}")
