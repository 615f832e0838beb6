"""CRUD API for tracked traders.

Every mutation clears the trader's cached last check so the new settings
apply on the next monitor tick. Deleting a trader also deletes its position
records and notification logs.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import Session, select

from traderwatch.api.deps import get_monitor
from traderwatch.config import settings
from traderwatch.database import get_session
from traderwatch.engine.scheduler import TraderMonitor
from traderwatch.models.notification_log import NotificationLog
from traderwatch.models.position_record import PositionRecord
from traderwatch.models.tracked_trader import TrackedTrader
from traderwatch.schemas.tracked_trader import (
    TrackedTraderCreate,
    TrackedTraderRead,
    TrackedTraderUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/traders", tags=["traders"])


def _get_or_404(session: Session, trader_pk: int) -> TrackedTrader:
    trader = session.get(TrackedTrader, trader_pk)
    if not trader:
        raise HTTPException(status_code=404, detail="Trader not found")
    return trader


@router.get("", response_model=list[TrackedTraderRead])
def list_traders(
    active: bool | None = None,
    session: Session = Depends(get_session),
):
    stmt = select(TrackedTrader)
    if active is not None:
        stmt = stmt.where(TrackedTrader.is_active == active)
    return session.exec(stmt.order_by(TrackedTrader.id)).all()


@router.post("", response_model=TrackedTraderRead, status_code=201)
def create_trader(
    data: TrackedTraderCreate,
    session: Session = Depends(get_session),
    monitor: TraderMonitor = Depends(get_monitor),
):
    existing = session.exec(
        select(TrackedTrader).where(TrackedTrader.trader_id == data.trader_id)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Trader is already tracked")

    payload = data.model_dump()
    if payload["poll_interval"] is None:
        payload["poll_interval"] = settings.default_poll_interval
    trader = TrackedTrader(**payload)
    session.add(trader)
    session.commit()
    session.refresh(trader)

    monitor.invalidate(trader.trader_id)
    return trader


@router.get("/{trader_pk}", response_model=TrackedTraderRead)
def get_trader(trader_pk: int, session: Session = Depends(get_session)):
    return _get_or_404(session, trader_pk)


@router.put("/{trader_pk}", response_model=TrackedTraderRead)
def update_trader(
    trader_pk: int,
    data: TrackedTraderUpdate,
    session: Session = Depends(get_session),
    monitor: TraderMonitor = Depends(get_monitor),
):
    trader = _get_or_404(session, trader_pk)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(trader, key, value)
    trader.updated_at = datetime.now(timezone.utc)

    session.add(trader)
    session.commit()
    session.refresh(trader)

    monitor.invalidate(trader.trader_id)
    return trader


@router.delete("/{trader_pk}", status_code=204)
def delete_trader(
    trader_pk: int,
    session: Session = Depends(get_session),
    monitor: TraderMonitor = Depends(get_monitor),
):
    """Stop tracking a trader and drop its position and notification history."""
    trader = _get_or_404(session, trader_pk)
    trader_id = trader.trader_id

    conn = session.connection()
    conn.execute(delete(PositionRecord).where(PositionRecord.trader_id == trader_id))
    conn.execute(delete(NotificationLog).where(NotificationLog.trader_id == trader_id))
    session.delete(trader)
    session.commit()
    logger.info(f"[{trader_id}] Trader deleted with its position history")
    monitor.invalidate(trader_id)


@router.post("/{trader_pk}/toggle", response_model=TrackedTraderRead)
def toggle_trader(
    trader_pk: int,
    session: Session = Depends(get_session),
    monitor: TraderMonitor = Depends(get_monitor),
):
    trader = _get_or_404(session, trader_pk)
    trader.is_active = not trader.is_active
    trader.updated_at = datetime.now(timezone.utc)
    session.add(trader)
    session.commit()
    session.refresh(trader)

    monitor.invalidate(trader.trader_id)
    return trader
