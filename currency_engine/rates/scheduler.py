"""
Auto-refresh Scheduler

Drives the acquisition service from connectivity events and timers:
- going online triggers an immediate refresh, then one every refresh interval
- going offline stops refreshing (no attempts are made while offline)
- the staleness monitor re-evaluates the snapshot on its own, slower, timer
"""

import asyncio
from typing import Optional

import structlog

from currency_engine.rates.acquisition import RateAcquisitionService
from currency_engine.rates.staleness import StalenessMonitor


logger = structlog.get_logger()


class AutoRefreshScheduler:
    """Background tasks for periodic refresh and staleness checks."""

    def __init__(
        self,
        acquisition: RateAcquisitionService,
        monitor: StalenessMonitor,
        refresh_interval_seconds: float = 300,
        staleness_interval_seconds: float = 3600,
    ):
        self._acquisition = acquisition
        self._monitor = monitor
        self._refresh_interval = refresh_interval_seconds
        self._staleness_interval = staleness_interval_seconds
        self._online = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._staleness_task: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def is_running(self) -> bool:
        return self._staleness_task is not None and not self._staleness_task.done()

    def start(self, online: bool = True) -> None:
        """Start the staleness loop and apply the initial connectivity state."""
        if self._staleness_task is None or self._staleness_task.done():
            self._staleness_task = asyncio.create_task(self._staleness_loop())
        self.set_online(online)

    def set_online(self, online: bool) -> None:
        """Handle a connectivity change. Repeated signals are ignored."""
        if online == self._online:
            return
        self._online = online

        if online:
            logger.info("connectivity_restored")
            self._refresh_task = asyncio.create_task(self._refresh_loop())
        else:
            logger.info("connectivity_lost")
            if self._refresh_task is not None:
                self._refresh_task.cancel()
                self._refresh_task = None

    async def stop(self) -> None:
        tasks = [t for t in (self._refresh_task, self._staleness_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_task = None
        self._staleness_task = None
        self._online = False

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self._acquisition.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep the loop alive; the next tick retries
                logger.exception("scheduled_refresh_crashed")
            await asyncio.sleep(self._refresh_interval)

    async def _staleness_loop(self) -> None:
        while True:
            self._monitor.check(self._acquisition.store.snapshot)
            await asyncio.sleep(self._staleness_interval)
