"""Notification log API and test message endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlmodel import Session, select, func

from traderwatch.api.deps import get_monitor
from traderwatch.database import get_session
from traderwatch.engine.scheduler import TraderMonitor
from traderwatch.errors import NotificationError
from traderwatch.models.notification_log import DeliveryStatus, NotificationLog
from traderwatch.schemas.position_record import NotificationLogPage
from traderwatch.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationLogPage)
def list_notification_logs(
    trader_id: str | None = None,
    status: DeliveryStatus | None = None,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    stmt = select(NotificationLog)
    if trader_id is not None:
        stmt = stmt.where(NotificationLog.trader_id == trader_id)
    if status is not None:
        stmt = stmt.where(NotificationLog.status == status)

    total = session.exec(select(func.count()).select_from(stmt.subquery())).one()
    rows = session.exec(
        stmt.order_by(NotificationLog.created_at.desc()).offset(offset).limit(limit)  # type: ignore[attr-defined]
    ).all()
    return {"total": total, "items": rows}


class TestNotificationRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


@router.post("/test")
async def send_test_notification(
    body: TestNotificationRequest,
    monitor: TraderMonitor = Depends(get_monitor),
):
    """Send a one-off message through the configured notifier."""
    notifier = monitor.dispatcher.notifier
    try:
        await notifier.send(body.message)
    except NotificationError as e:
        logger.error(f"Test notification failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "ok", "notifier": notifier.name}
