"""PositionRecord model: one observed position of a tracked trader."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON, UniqueConstraint


class PositionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class PositionRecord(SQLModel, table=True):
    __tablename__ = "position_record"
    __table_args__ = (
        UniqueConstraint("trader_id", "position_id", name="uq_position_record_trader_position"),
    )

    id: int | None = Field(default=None, primary_key=True)
    trader_id: str = Field(index=True, max_length=50)
    position_id: str = Field(max_length=50)  # exchange-assigned open order id
    trader_name: str = ""
    contract_id: str = ""
    symbol: str = ""  # e.g. "BTC/USDT"
    status: PositionStatus = Field(default=PositionStatus.ACTIVE, index=True)
    side: str = ""  # "LONG" or "SHORT"

    # Decimal strings exactly as reported by the exchange
    size: str = ""
    open_price: str = ""
    leverage: str = ""  # e.g. "20x"

    first_seen_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    last_seen_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    closed_at: datetime | None = None
    raw_data: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
