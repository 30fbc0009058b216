"""
Main Orchestrator for the Currency Engine

This module ties together all the components:
1. Registry and rate store seeded at start-up (history, then fallback)
2. Acquisition service and scheduler keeping rates fresh
3. Calculator for previews, engine for executed operations
4. Audit log recording every execution

DESIGN DECISION: There are no module-level service singletons.
Everything is built explicitly and owned by one CurrencyEngineContext,
so tests and multiple users never share a rate snapshot by accident.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import httpx
import structlog
from pydantic import ValidationError

from currency_engine.audit import ConversionAuditLog
from currency_engine.config import EngineSettings, RateProviderSettings, get_settings
from currency_engine.conversion import ConversionCalculator
from currency_engine.execution import ExecutionEngine
from currency_engine.models.currency import ConversionResult, utc_now
from currency_engine.models.execution import ExecutionRequest, ExecutionResult
from currency_engine.rates import (
    AutoRefreshScheduler,
    RateAcquisitionService,
    RateStore,
    RefreshOutcome,
    StalenessMonitor,
)
from currency_engine.registry import CurrencyRegistry
from currency_engine.services.providers import (
    FallbackChainProvider,
    HttpRateProvider,
    RateProviderInterface,
)
from currency_engine.services.storage import (
    AuditStorageInterface,
    CurrencySourceInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCurrencySource,
    GoogleSheetsRateHistoryStorage,
    InMemoryAuditStorage,
    InMemoryCurrencySource,
    InMemoryRateHistoryStorage,
    RateHistoryStorageInterface,
    StorageError,
)


logger = structlog.get_logger()


class CurrencyEngineContext:
    """
    One fully wired engine.

    Consumers call execute() for operations and convert() for previews.
    """

    def __init__(
        self,
        settings: EngineSettings,
        registry: CurrencyRegistry,
        store: RateStore,
        monitor: StalenessMonitor,
        provider: RateProviderInterface,
        acquisition: RateAcquisitionService,
        scheduler: AutoRefreshScheduler,
        calculator: ConversionCalculator,
        audit_log: ConversionAuditLog,
        engine: ExecutionEngine,
    ):
        self.settings = settings
        self.registry = registry
        self.store = store
        self.monitor = monitor
        self.provider = provider
        self.acquisition = acquisition
        self.scheduler = scheduler
        self.calculator = calculator
        self.audit_log = audit_log
        self.engine = engine

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        return await self.engine.execute(request)

    def convert(self, amount: Decimal, from_code: str, to_code: str) -> ConversionResult:
        return self.calculator.convert(amount, from_code, to_code)

    async def refresh(self) -> RefreshOutcome:
        return await self.acquisition.refresh()

    def start(self, online: bool = True) -> None:
        """Start background refresh and staleness checks."""
        self.scheduler.start(online)

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.provider.aclose()


def build_default_provider(
    settings: RateProviderSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> RateProviderInterface:
    """Primary provider followed by the configured fallbacks, in order."""
    providers: list[RateProviderInterface] = [
        HttpRateProvider.from_settings(settings, client=client)
    ]
    for url in settings.fallback_urls_list:
        providers.append(
            HttpRateProvider.from_settings(
                settings,
                url_template=url,
                name=httpx.URL(url).host,
                client=client,
            )
        )
    if len(providers) == 1:
        return providers[0]
    return FallbackChainProvider(providers)


def _google_sheets_backends() -> Optional[
    tuple[RateHistoryStorageInterface, AuditStorageInterface, CurrencySourceInterface]
]:
    try:
        client = GoogleSheetsClient()
    except (ValidationError, StorageError) as e:
        # Storage not configured - continue without it
        logger.warning("google_sheets_not_configured", error=str(e))
        return None
    return (
        GoogleSheetsRateHistoryStorage(client),
        GoogleSheetsAuditStorage(client),
        GoogleSheetsCurrencySource(client),
    )


async def create_engine_context(
    settings: Optional[EngineSettings] = None,
    provider: Optional[RateProviderInterface] = None,
    provider_settings: Optional[RateProviderSettings] = None,
    use_google_sheets: bool = False,
    history: Optional[RateHistoryStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    currency_source: Optional[CurrencySourceInterface] = None,
    is_online: Optional[Callable[[], bool]] = None,
    clock: Callable[[], datetime] = utc_now,
    bootstrap: bool = True,
) -> CurrencyEngineContext:
    """
    Factory function to create all engine components.

    Args:
        settings: Engine settings. Loaded from the environment if None.
        provider: Rate provider. Built from provider_settings if None.
        provider_settings: Provider settings, also sizing the refresh
                    budget. Loaded from the environment if None.
        use_google_sheets: Persist to Google Sheets instead of memory.
                    Falls back to memory when Sheets is not configured.
        history / audit_storage / currency_source: Explicit backends,
                    taking precedence over use_google_sheets.
        is_online: Connectivity probe. Defaults to the scheduler's
                    online flag once the scheduler has been started.
        clock: Time source, injectable for tests.
        bootstrap: Load the registry and seed rates before returning.

    Returns:
        A wired CurrencyEngineContext
    """
    settings = settings or get_settings().engine
    provider_settings = provider_settings or get_settings().rate_provider

    if use_google_sheets and None in (history, audit_storage, currency_source):
        backends = _google_sheets_backends()
        if backends is not None:
            sheets_history, sheets_audit, sheets_currencies = backends
            history = history if history is not None else sheets_history
            audit_storage = audit_storage if audit_storage is not None else sheets_audit
            if currency_source is None:
                currency_source = sheets_currencies

    if history is None:
        history = InMemoryRateHistoryStorage()
    if audit_storage is None:
        audit_storage = InMemoryAuditStorage()
    if currency_source is None:
        currency_source = InMemoryCurrencySource()

    if provider is None:
        provider = build_default_provider(provider_settings)

    registry = CurrencyRegistry(
        base_currency=settings.base_currency,
        popular_order=settings.popular_currencies_list,
        popular_limit=settings.popular_limit,
    )
    monitor = StalenessMonitor(
        threshold_hours=settings.stale_threshold_hours,
        clock=clock,
    )
    store = RateStore(
        base_currency=settings.base_currency,
        monitor=monitor,
        clock=clock,
    )

    def scheduler_online() -> bool:
        # Assume online until the scheduler is started
        return scheduler.is_online or not scheduler.is_running

    acquisition = RateAcquisitionService(
        store=store,
        provider=provider,
        history=history,
        is_online=is_online or scheduler_online,
        timeout_seconds=provider_settings.refresh_budget_seconds,
        clock=clock,
    )
    scheduler = AutoRefreshScheduler(
        acquisition=acquisition,
        monitor=monitor,
        refresh_interval_seconds=settings.refresh_interval_seconds,
        staleness_interval_seconds=settings.staleness_check_interval_seconds,
    )

    calculator = ConversionCalculator(store=store, registry=registry, monitor=monitor)
    audit_log = ConversionAuditLog(
        storage=audit_storage,
        history=history,
        base_currency=settings.base_currency,
    )
    engine = ExecutionEngine(calculator=calculator, registry=registry, audit_log=audit_log)

    if bootstrap:
        await registry.load(currency_source)
        await acquisition.bootstrap()

    logger.info(
        "engine_context_created",
        base_currency=settings.base_currency,
        provider=provider.name,
        environment=settings.app_environment,
    )

    return CurrencyEngineContext(
        settings=settings,
        registry=registry,
        store=store,
        monitor=monitor,
        provider=provider,
        acquisition=acquisition,
        scheduler=scheduler,
        calculator=calculator,
        audit_log=audit_log,
        engine=engine,
    )
