"""Batch notification dispatch with delivery bookkeeping.

One diff cycle produces at most one OPENED and one CLOSED batch. Each batch
gets a PENDING log entry per record, one aggregated message, and a single
status update for all entries once the send attempt is over.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from traderwatch.errors import NotificationError, StoreError
from traderwatch.models.notification_log import DeliveryStatus, EventType
from traderwatch.models.position_record import PositionRecord
from traderwatch.services.notifiers import Notifier
from traderwatch.stores import NotificationLogStore

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    event_type: EventType
    entry_ids: list[int] = field(default_factory=list)
    delivered: bool = False
    error: str | None = None
    record_count: int = 0


class NotificationDispatcher:
    def __init__(self, log_store: NotificationLogStore, notifier: Notifier):
        self.log_store = log_store
        self.notifier = notifier

    async def dispatch(
        self, records: Sequence[PositionRecord], event_type: EventType
    ) -> DispatchResult | None:
        """Notify one batch. Returns None for an empty batch.

        A record whose log entry cannot be created is still included in the
        message; it just has no delivery bookkeeping. Delivery failures are
        final for the batch and never touch position records.
        """
        if not records:
            return None

        trader_id = records[0].trader_id
        result = DispatchResult(event_type=event_type, record_count=len(records))
        for record in records:
            try:
                entry = self.log_store.create_pending(record.trader_id, record.position_id, event_type)
            except StoreError as e:
                logger.error(
                    f"[{trader_id}] Failed to create notification log for {record.position_id}: {e}"
                )
                continue
            result.entry_ids.append(entry.id)

        message = self.notifier.build_message(records, event_type)
        try:
            await self.notifier.send(message)
        except NotificationError as e:
            logger.error(f"[{trader_id}] Failed to send {event_type.value} notification: {e}")
            result.error = str(e)
            self._settle(trader_id, result.entry_ids, DeliveryStatus.FAILED, result.error)
            return result

        result.delivered = True
        logger.info(
            f"[{trader_id}] Sent {event_type.value} notification for {len(records)} position(s) "
            f"via {self.notifier.name}"
        )
        self._settle(trader_id, result.entry_ids, DeliveryStatus.SUCCESS)
        return result

    def _settle(
        self, trader_id: str, entry_ids: list[int], status: DeliveryStatus, error: str | None = None
    ):
        if not entry_ids:
            return
        try:
            updated = self.log_store.update_status_batch(entry_ids, status, error)
        except StoreError as e:
            logger.error(
                f"[{trader_id}] Failed to mark {len(entry_ids)} notification log(s) {status.value}: {e}"
            )
            return
        if updated != len(entry_ids):
            logger.warning(
                f"[{trader_id}] Marked {updated}/{len(entry_ids)} notification log(s) {status.value}"
            )
