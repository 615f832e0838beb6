"""Trader monitor: the tick loop that decides who to poll and runs each poll.

A single APScheduler interval job calls tick() every `tick_seconds`. Each tick
claims the traders whose poll interval has elapsed and starts one asyncio
task per claimed trader. Tasks run fetch -> detect new -> detect closed ->
notify, strictly in that order, independently of each other. A trader with
a cycle still in flight is skipped until that cycle ends.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from traderwatch.engine.check_cache import LastCheckCache
from traderwatch.engine.diff import PositionDiffer
from traderwatch.engine.dispatcher import DispatchResult, NotificationDispatcher
from traderwatch.errors import PositionFetchError, StoreError
from traderwatch.models.notification_log import EventType
from traderwatch.models.position_record import PositionRecord
from traderwatch.models.tracked_trader import TrackedTrader
from traderwatch.services.notifiers import Notifier
from traderwatch.services.position_source import PositionSource
from traderwatch.stores import NotificationLogStore, PositionStore, TraderStore

logger = logging.getLogger(__name__)

TICK_JOB_ID = "monitor_tick"


@dataclass
class CycleResult:
    trader_id: str
    opened: list[PositionRecord] = field(default_factory=list)
    closed: list[PositionRecord] = field(default_factory=list)
    dispatches: list[DispatchResult] = field(default_factory=list)


class TraderMonitor:
    def __init__(
        self,
        trader_store: TraderStore,
        position_store: PositionStore,
        log_store: NotificationLogStore,
        source: PositionSource,
        notifier: Notifier,
        tick_seconds: float = 1.0,
        max_concurrent_polls: int = 100,
        cache: LastCheckCache | None = None,
    ):
        self.trader_store = trader_store
        self.source = source
        self.differ = PositionDiffer(position_store)
        self.dispatcher = NotificationDispatcher(log_store, notifier)
        self.tick_seconds = tick_seconds
        self.cache = cache if cache is not None else LastCheckCache()
        self._poll_slots = asyncio.Semaphore(max_concurrent_polls)
        self._tasks: set[asyncio.Task] = set()
        self._in_flight: set[str] = set()
        self._scheduler: AsyncIOScheduler | None = None

    # -- lifecycle ---------------------------------------------------------

    def start(self):
        """Start ticking. Must be called from a running event loop."""
        if self._scheduler is not None and self._scheduler.running:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id=TICK_JOB_ID,
            name="Trader monitor tick",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Monitor started (tick every {self.tick_seconds}s)")

    async def stop(self):
        """Stop ticking. In-flight cycles keep running; see drain()."""
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None or not scheduler.running:
            return
        scheduler.shutdown(wait=False)
        # Let the loop run the scheduler's deferred shutdown
        await asyncio.sleep(0)
        logger.info("Monitor stopped")

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def drain(self):
        """Wait for every in-flight trader cycle to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- scheduling --------------------------------------------------------

    async def tick(self, now: datetime | None = None) -> list[str]:
        """Dispatch a cycle for every due trader. Returns their trader ids."""
        now = now or datetime.now(timezone.utc)
        try:
            traders = self.trader_store.list_active()
        except StoreError as e:
            logger.error(f"Failed to get active traders, skipping tick: {e}")
            return []

        dispatched = []
        for trader in traders:
            trader_id = trader.trader_id
            if trader_id in self._in_flight:
                logger.warning(f"[{trader_id}] Skipping overlapping cycle")
                continue
            if not self.cache.claim_if_due(trader_id, trader.poll_interval, now):
                continue
            self._in_flight.add(trader_id)
            task = asyncio.create_task(
                self.run_trader_cycle(trader), name=f"trader_{trader_id}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(lambda _, tid=trader_id: self._in_flight.discard(tid))
            dispatched.append(trader_id)
        return dispatched

    async def run_trader_cycle(
        self, trader: TrackedTrader, now: datetime | None = None
    ) -> CycleResult | None:
        """One diff cycle for one trader. Returns None if the cycle was skipped."""
        trader_id = trader.trader_id
        async with self._poll_slots:
            logger.debug(f"[{trader_id}] Polling (interval={trader.poll_interval}s)")
            try:
                snapshot = await self.source.fetch_open_positions(trader_id)
            except PositionFetchError as e:
                logger.error(f"[{trader_id}] Failed to fetch positions: {e}")
                return None

            try:
                now = now or datetime.now(timezone.utc)
                result = CycleResult(trader_id=trader_id)
                result.opened = self.differ.detect_new(trader_id, snapshot, now)
                result.closed = self.differ.detect_closed(trader_id, snapshot, now)

                for records, event_type in (
                    (result.opened, EventType.OPENED),
                    (result.closed, EventType.CLOSED),
                ):
                    dispatch = await self.dispatcher.dispatch(records, event_type)
                    if dispatch is not None:
                        result.dispatches.append(dispatch)
                return result
            except Exception as e:
                logger.error(f"[{trader_id}] Cycle error: {e}", exc_info=True)
                return None

    async def trigger(self, trader_id: str) -> CycleResult | None:
        """Run one cycle for a trader now, regardless of its interval."""
        trader = self.trader_store.get(trader_id)
        if trader is None:
            raise LookupError(f"Unknown trader: {trader_id}")
        if trader_id in self._in_flight:
            logger.warning(f"[{trader_id}] Manual trigger skipped, a cycle is already running")
            return None
        self._in_flight.add(trader_id)
        try:
            return await self.run_trader_cycle(trader)
        finally:
            self._in_flight.discard(trader_id)

    # -- cache invalidation hook ------------------------------------------

    def invalidate(self, trader_id: str):
        """Make one trader due on the next tick (after a config change)."""
        self.cache.invalidate(trader_id)

    def refresh_all(self):
        """Make every trader due on the next tick."""
        self.cache.clear()

    def status(self) -> dict:
        """Current monitor state for the API."""
        return {
            "running": self.running,
            "tick_seconds": self.tick_seconds,
            "in_flight": len(self._tasks),
            "last_checks": {
                trader_id: checked.isoformat()
                for trader_id, checked in self.cache.snapshot().items()
            },
        }
