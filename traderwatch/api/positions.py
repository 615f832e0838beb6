"""Position record history API."""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select, func

from traderwatch.database import get_session
from traderwatch.models.position_record import PositionRecord, PositionStatus
from traderwatch.schemas.position_record import PositionRecordPage, PositionStats
from traderwatch.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/api/positions", tags=["positions"])


@router.get("", response_model=PositionRecordPage)
def list_positions(
    trader_id: str | None = None,
    status: PositionStatus | None = None,
    symbol: str | None = None,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    stmt = select(PositionRecord)
    if trader_id is not None:
        stmt = stmt.where(PositionRecord.trader_id == trader_id)
    if status is not None:
        stmt = stmt.where(PositionRecord.status == status)
    if symbol:
        stmt = stmt.where(PositionRecord.symbol.contains(symbol))  # type: ignore[attr-defined]

    total = session.exec(select(func.count()).select_from(stmt.subquery())).one()
    rows = session.exec(
        stmt.order_by(PositionRecord.first_seen_at.desc()).offset(offset).limit(limit)  # type: ignore[attr-defined]
    ).all()
    return {"total": total, "items": rows}


@router.get("/stats", response_model=PositionStats)
def position_stats(
    trader_id: str | None = None,
    session: Session = Depends(get_session),
):
    """Record counts by status, for one trader or all of them."""
    stmt = select(PositionRecord.status, func.count()).group_by(PositionRecord.status)
    if trader_id is not None:
        stmt = stmt.where(PositionRecord.trader_id == trader_id)
    counts = {status: count for status, count in session.exec(stmt).all()}

    active = counts.get(PositionStatus.ACTIVE, 0)
    closed = counts.get(PositionStatus.CLOSED, 0)
    return {"total": active + closed, "active": active, "closed": closed}
