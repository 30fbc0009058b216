"""
Staleness Monitor

DESIGN DECISION: Staleness is informational only. A stale snapshot is
still used for conversions; callers get a flag they can show to the user.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from currency_engine.models.currency import RateSnapshot, utc_now


logger = structlog.get_logger()

DEFAULT_THRESHOLD_HOURS = 24


def is_stale(
    snapshot: RateSnapshot,
    threshold_hours: float = DEFAULT_THRESHOLD_HOURS,
    now: Optional[datetime] = None,
) -> bool:
    """True when the snapshot is older than the threshold or was never updated."""
    if snapshot.last_updated is None:
        return True
    now = now or utc_now()
    return now - snapshot.last_updated > timedelta(hours=threshold_hours)


class StalenessMonitor:
    """
    Evaluates snapshot age against a threshold.

    check() remembers the previous verdict so that only transitions
    are logged, not every evaluation.
    """

    def __init__(
        self,
        threshold_hours: float = DEFAULT_THRESHOLD_HOURS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._threshold_hours = threshold_hours
        self._clock = clock
        self._last_verdict: Optional[bool] = None

    @property
    def threshold_hours(self) -> float:
        return self._threshold_hours

    def is_stale(self, snapshot: RateSnapshot) -> bool:
        return is_stale(snapshot, self._threshold_hours, now=self._clock())

    def check(self, snapshot: RateSnapshot) -> bool:
        stale = self.is_stale(snapshot)

        if stale and not self._last_verdict:
            logger.warning(
                "rates_stale",
                last_updated=snapshot.last_updated.isoformat() if snapshot.last_updated else None,
                source=snapshot.source.value,
                threshold_hours=self._threshold_hours,
            )
        elif not stale and self._last_verdict:
            logger.info(
                "rates_fresh",
                last_updated=snapshot.last_updated.isoformat() if snapshot.last_updated else None,
                source=snapshot.source.value,
            )

        self._last_verdict = stale
        return stale
