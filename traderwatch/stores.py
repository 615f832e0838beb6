"""Persistence collaborators for the monitor engine.

Each store wraps one table behind the few operations the engine needs and
turns every database failure into a StoreError, so the engine only has one
exception type to reason about.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from traderwatch.errors import StoreError
from traderwatch.models.tracked_trader import TrackedTrader
from traderwatch.models.position_record import PositionRecord, PositionStatus
from traderwatch.models.notification_log import NotificationLog, EventType, DeliveryStatus

logger = logging.getLogger(__name__)


class _Store:
    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def _session(self, action: str):
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f"{action} failed: {e}") from e


class TraderStore(_Store):
    def list_active(self) -> list[TrackedTrader]:
        with self._session("list active traders") as session:
            return list(session.exec(
                select(TrackedTrader).where(TrackedTrader.is_active == True)
            ).all())

    def get(self, trader_id: str) -> TrackedTrader | None:
        with self._session("get trader") as session:
            return session.exec(
                select(TrackedTrader).where(TrackedTrader.trader_id == trader_id)
            ).first()


class PositionStore(_Store):
    def get(self, trader_id: str, position_id: str) -> PositionRecord | None:
        with self._session("get position") as session:
            return session.exec(
                select(PositionRecord).where(
                    PositionRecord.trader_id == trader_id,
                    PositionRecord.position_id == position_id,
                )
            ).first()

    def list_active(self, trader_id: str) -> list[PositionRecord]:
        with self._session("list active positions") as session:
            return list(session.exec(
                select(PositionRecord).where(
                    PositionRecord.trader_id == trader_id,
                    PositionRecord.status == PositionStatus.ACTIVE,
                )
            ).all())

    def create(self, record: PositionRecord) -> PositionRecord:
        with self._session("create position") as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def mark_closed(self, record_id: int, closed_at) -> bool:
        """Move an ACTIVE record to CLOSED.

        Returns False when the record is missing or already closed, so a
        record can only ever be closed once.
        """
        stmt = (
            update(PositionRecord)
            .where(
                PositionRecord.id == record_id,
                PositionRecord.status == PositionStatus.ACTIVE,
            )
            .values(status=PositionStatus.CLOSED, closed_at=closed_at)
        )
        with self._session("close position") as session:
            result = session.connection().execute(stmt)
            session.commit()
            return result.rowcount == 1


class NotificationLogStore(_Store):
    def create_pending(
        self, trader_id: str, position_id: str, event_type: EventType
    ) -> NotificationLog:
        entry = NotificationLog(
            trader_id=trader_id,
            position_id=position_id,
            event_type=event_type,
            status=DeliveryStatus.PENDING,
        )
        with self._session("create notification log") as session:
            session.add(entry)
            session.commit()
            session.refresh(entry)
            return entry

    def update_status_batch(
        self, ids: list[int], status: DeliveryStatus, error: str | None = None
    ) -> int:
        """Settle many PENDING entries; returns rows updated.

        Entries that are already SUCCESS or FAILED are left untouched.
        """
        if not ids:
            return 0
        values = {"status": status}
        if error:
            values["error"] = error
        stmt = (
            update(NotificationLog)
            .where(
                NotificationLog.id.in_(ids),  # type: ignore[attr-defined]
                NotificationLog.status == DeliveryStatus.PENDING,
            )
            .values(**values)
        )
        with self._session("update notification logs") as session:
            result = session.connection().execute(stmt)
            session.commit()
            return result.rowcount
