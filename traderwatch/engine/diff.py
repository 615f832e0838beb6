"""Position diff engine.

Compares a trader's freshly fetched open positions with the ACTIVE records
in the store. Closure is detected by absence from the exchange's current
list, so a position the exchange silently drops is still reported closed on
the next poll.
"""

import logging
from datetime import datetime, timezone

from traderwatch.errors import StoreError
from traderwatch.models.position_record import PositionRecord, PositionStatus
from traderwatch.services.position_source import OpenPosition
from traderwatch.stores import PositionStore

logger = logging.getLogger(__name__)


def parse_open_time(value: str) -> datetime | None:
    """Parse a millisecond epoch string into an aware UTC datetime."""
    try:
        millis = int(value)
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class PositionDiffer:
    def __init__(self, position_store: PositionStore):
        self.position_store = position_store

    def detect_new(
        self, trader_id: str, snapshot: list[OpenPosition], now: datetime
    ) -> list[PositionRecord]:
        """Persist and return records for positions never seen before."""
        created = []
        for pos in snapshot:
            try:
                existing = self.position_store.get(trader_id, pos.position_id)
            except StoreError as e:
                # Treated as absent; the unique constraint stops a duplicate
                logger.warning(f"[{trader_id}] Lookup failed for {pos.position_id}, treating as new: {e}")
                existing = None
            if existing is not None:
                continue

            record = self._build_record(trader_id, pos, now)
            try:
                record = self.position_store.create(record)
            except StoreError as e:
                logger.error(f"[{trader_id}] Failed to save new position {pos.position_id}: {e}")
                continue

            created.append(record)
            logger.info(f"[{trader_id}] New position {pos.position_id} {pos.symbol} {pos.side}")
        return created

    def detect_closed(
        self, trader_id: str, snapshot: list[OpenPosition], now: datetime
    ) -> list[PositionRecord]:
        """Close and return ACTIVE records missing from the snapshot."""
        try:
            active = self.position_store.list_active(trader_id)
        except StoreError as e:
            logger.error(f"[{trader_id}] Failed to load active positions: {e}")
            return []

        current_ids = {pos.position_id for pos in snapshot}
        closed = []
        for record in active:
            if record.position_id in current_ids:
                continue
            try:
                changed = self.position_store.mark_closed(record.id, now)
            except StoreError as e:
                logger.error(f"[{trader_id}] Failed to close position {record.position_id}: {e}")
                continue
            if not changed:
                logger.warning(f"[{trader_id}] Position {record.position_id} was already closed")
                continue

            record.status = PositionStatus.CLOSED
            record.closed_at = now
            closed.append(record)
            logger.info(f"[{trader_id}] Position closed {record.position_id} {record.symbol} {record.side}")
        return closed

    def _build_record(self, trader_id: str, pos: OpenPosition, now: datetime) -> PositionRecord:
        first_seen = parse_open_time(pos.open_time)
        if first_seen is None:
            logger.warning(
                f"[{trader_id}] Unparseable open time {pos.open_time!r} for {pos.position_id}, using now"
            )
            first_seen = now

        leverage = pos.leverage
        if leverage and not leverage.endswith("x"):
            leverage += "x"

        return PositionRecord(
            trader_id=trader_id,
            position_id=pos.position_id,
            trader_name=pos.trader_name,
            contract_id=pos.contract_id,
            symbol=pos.symbol,
            status=PositionStatus.ACTIVE,
            side=pos.side,
            size=pos.size,
            open_price=pos.price,
            leverage=leverage,
            first_seen_at=first_seen,
            last_seen_at=now,
            raw_data=pos.raw or None,
        )
