"""
Execution Engine

Reconciles a financial operation's amount into its account currency and
the user's primary currency, and records how it did so.

FLOW:
1. Validate the amount and the three currency codes
2. Classify how operation, account and primary currencies relate
3. Compute both legs through the conversion calculator
4. Build the audit record and append it to the audit log

CRITICAL: An operation either produces both amounts and an audit record,
or fails with nothing recorded. A partial conversion is never a success.
The engine never touches balances; callers apply the returned amounts.
"""

import time
from decimal import Decimal
from typing import Callable, NamedTuple

import structlog

from currency_engine.audit import ConversionAuditLog
from currency_engine.conversion import ConversionCalculator, ConversionUnavailableError
from currency_engine.models.audit import ExecutionAuditRecord
from currency_engine.models.cases import ConversionCase
from currency_engine.models.currency import ConversionResult
from currency_engine.models.execution import ExecutionRequest, ExecutionResult
from currency_engine.registry import CurrencyRegistry, UnsupportedCurrencyError


logger = structlog.get_logger()


class InvalidAmountError(ValueError):
    """Amount is negative, non-finite, or zero where zero is not allowed."""
    pass


def classify_conversion_case(
    operation_currency: str,
    account_currency: str,
    primary_currency: str,
) -> ConversionCase:
    """
    Relationship between the three currencies. First match wins.

    AMOUNT_DIFFERENT_OTHERS_SAME is never returned: its condition is the
    same as ACCOUNT_PRIMARY_SAME, which is checked first.
    """
    op = operation_currency.upper()
    acc = account_currency.upper()
    pri = primary_currency.upper()

    if op == acc == pri:
        return ConversionCase.ALL_SAME
    if op == acc:
        return ConversionCase.AMOUNT_ACCOUNT_SAME
    if op == pri:
        return ConversionCase.AMOUNT_PRIMARY_SAME
    if acc == pri:
        return ConversionCase.ACCOUNT_PRIMARY_SAME
    return ConversionCase.ALL_DIFFERENT


class Legs(NamedTuple):
    """The two conversions behind one operation."""
    account: ConversionResult
    primary: ConversionResult

    @property
    def headline_rate(self) -> Decimal:
        """Rate of the leg that actually converted (1 when neither did)."""
        if self.account.is_identity:
            return self.primary.rate
        return self.account.rate

    @property
    def converted_leg(self) -> ConversionResult:
        return self.primary if self.account.is_identity else self.account


Handler = Callable[[ExecutionRequest], Legs]

_REQUEST_ERRORS = (InvalidAmountError, UnsupportedCurrencyError, ConversionUnavailableError)


class ExecutionEngine:
    """
    Executes operations against the current rate snapshot.

    DESIGN DECISION: Dispatch goes through a table keyed by ConversionCase.
    The table is checked against the enum at construction, so a new case
    without a handler fails immediately instead of at the first request.
    """

    def __init__(
        self,
        calculator: ConversionCalculator,
        registry: CurrencyRegistry,
        audit_log: ConversionAuditLog,
    ):
        self._calculator = calculator
        self._registry = registry
        self._audit_log = audit_log
        self._handlers = self._handler_table()

        missing = [case.value for case in ConversionCase if case not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler for conversion cases: {', '.join(missing)}")

    def _handler_table(self) -> dict[ConversionCase, Handler]:
        return {
            ConversionCase.ALL_SAME: self._all_same,
            ConversionCase.AMOUNT_ACCOUNT_SAME: self._amount_account_same,
            ConversionCase.AMOUNT_PRIMARY_SAME: self._amount_primary_same,
            ConversionCase.ACCOUNT_PRIMARY_SAME: self._account_primary_same,
            ConversionCase.AMOUNT_DIFFERENT_OTHERS_SAME: self._account_primary_same,
            ConversionCase.ALL_DIFFERENT: self._all_different,
        }

    # =========================================================================
    # CASE HANDLERS
    # =========================================================================

    def _identity(self, request: ExecutionRequest) -> ConversionResult:
        return self._calculator.convert(request.amount, request.currency, request.currency)

    def _all_same(self, request: ExecutionRequest) -> Legs:
        same = self._identity(request)
        return Legs(account=same, primary=same)

    def _amount_account_same(self, request: ExecutionRequest) -> Legs:
        return Legs(
            account=self._identity(request),
            primary=self._calculator.convert(
                request.amount, request.currency, request.primary_currency
            ),
        )

    def _amount_primary_same(self, request: ExecutionRequest) -> Legs:
        return Legs(
            account=self._calculator.convert(
                request.amount, request.currency, request.account_currency
            ),
            primary=self._identity(request),
        )

    def _account_primary_same(self, request: ExecutionRequest) -> Legs:
        # One conversion serves both amounts
        converted = self._calculator.convert(
            request.amount, request.currency, request.account_currency
        )
        return Legs(account=converted, primary=converted)

    def _all_different(self, request: ExecutionRequest) -> Legs:
        return Legs(
            account=self._calculator.convert(
                request.amount, request.currency, request.account_currency
            ),
            primary=self._calculator.convert(
                request.amount, request.currency, request.primary_currency
            ),
        )

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def _validate_amount(self, request: ExecutionRequest) -> None:
        amount = request.amount
        if not amount.is_finite():
            raise InvalidAmountError(f"Amount must be a finite number, got {amount}")
        if amount < 0:
            raise InvalidAmountError(f"Amount must not be negative, got {amount}")
        if amount == 0 and not request.operation_kind.allows_zero_amount:
            raise InvalidAmountError(
                f"Amount must be greater than zero for {request.operation_kind.value}"
            )

    def _build_record(
        self,
        request: ExecutionRequest,
        case: ConversionCase,
        legs: Legs,
    ) -> ExecutionAuditRecord:
        converted = legs.converted_leg
        return ExecutionAuditRecord(
            operation_kind=request.operation_kind,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            account_id=request.account_id,
            original_amount=request.amount,
            original_currency=request.currency,
            account_amount=legs.account.converted_amount,
            account_currency=request.account_currency,
            primary_amount=legs.primary.converted_amount,
            primary_currency=request.primary_currency,
            exchange_rate=legs.headline_rate,
            account_rate=legs.account.rate,
            primary_rate=legs.primary.rate,
            rate_source=converted.source,
            rate_date=converted.rate_date,
            is_stale=legs.account.is_stale or legs.primary.is_stale,
            conversion_case=case,
            details={"description": request.description} if request.description else {},
        )

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Execute one operation.

        Request-level errors (invalid amount, unsupported currency, missing
        rate) produce a failed result and no audit record.
        """
        started = time.perf_counter()

        try:
            self._validate_amount(request)
            for code in (request.currency, request.account_currency, request.primary_currency):
                self._registry.get(code)

            case = classify_conversion_case(
                request.currency,
                request.account_currency,
                request.primary_currency,
            )
            legs = self._handlers[case](request)
        except _REQUEST_ERRORS as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.warning(
                "execution_failed",
                error=str(e),
                error_type=type(e).__name__,
                entity_type=request.entity_type,
                entity_id=request.entity_id,
                operation_kind=request.operation_kind.value,
            )
            return ExecutionResult(
                success=False,
                error=str(e),
                error_type=type(e).__name__,
                execution_time_ms=elapsed,
            )

        record = self._build_record(request, case, legs)
        await self._audit_log.append(record)

        elapsed = (time.perf_counter() - started) * 1000
        logger.info(
            "execution_completed",
            operation_id=str(record.operation_id),
            conversion_case=case.value,
            rate_source=record.rate_source.value,
            is_stale=record.is_stale,
            execution_time_ms=round(elapsed, 3),
        )
        return ExecutionResult(
            success=True,
            operation_id=record.operation_id,
            account_amount=record.account_amount,
            account_currency=record.account_currency,
            primary_amount=record.primary_amount,
            primary_currency=record.primary_currency,
            exchange_rate=record.exchange_rate,
            conversion_case=case,
            audit_data=record,
            execution_time_ms=elapsed,
        )

    def has_sufficient_balance(
        self,
        balance: Decimal,
        balance_currency: str,
        amount: Decimal,
        currency: str,
    ) -> bool:
        """
        Read-only check that a balance covers an amount in another currency.

        Raises:
            ConversionUnavailableError: If the pair has no rate
        """
        needed = self._calculator.convert(amount, currency, balance_currency)
        return Decimal(balance) >= needed.converted_amount

    @property
    def calculator(self) -> ConversionCalculator:
        return self._calculator
