"""Runtime last-check cache.

Maps trader id -> time of the last poll dispatch. Nothing here is persisted:
a fresh process starts with every trader due.
"""

import logging
from datetime import datetime

from traderwatch.utils.rwlock import RWLock

logger = logging.getLogger(__name__)


def is_due(last_check: datetime | None, interval_seconds: float, now: datetime) -> bool:
    """A trader is due if never checked or its interval has fully elapsed."""
    if last_check is None:
        return True
    return (now - last_check).total_seconds() >= interval_seconds


class LastCheckCache:
    """Thread-safe trader id -> last-check mapping owned by one monitor."""

    def __init__(self):
        self._last_check: dict[str, datetime] = {}
        self._lock = RWLock()

    def get(self, trader_id: str) -> datetime | None:
        with self._lock.read():
            return self._last_check.get(trader_id)

    def claim_if_due(self, trader_id: str, interval_seconds: float, now: datetime) -> bool:
        """Record `now` for the trader if it is due, in one exclusive step.

        Returns True when the caller should dispatch a poll. Two callers
        racing for the same trader cannot both get True for one interval.
        """
        with self._lock.write():
            if not is_due(self._last_check.get(trader_id), interval_seconds, now):
                return False
            self._last_check[trader_id] = now
            return True

    def invalidate(self, trader_id: str):
        """Forget one trader's last check so the next tick polls it."""
        with self._lock.write():
            self._last_check.pop(trader_id, None)
        logger.debug(f"[{trader_id}] Cleared last-check cache entry")

    def clear(self):
        with self._lock.write():
            self._last_check.clear()
        logger.info("Cleared last-check cache for all traders")

    def snapshot(self) -> dict[str, datetime]:
        with self._lock.read():
            return dict(self._last_check)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._last_check)
