"""TrackedTrader model: a trader whose open positions are monitored."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class TrackedTrader(SQLModel, table=True):
    __tablename__ = "tracked_trader"

    id: int | None = Field(default=None, primary_key=True)
    trader_id: str = Field(unique=True, index=True, max_length=50)  # Weex trader user id
    name: str = ""
    is_active: bool = Field(default=True, index=True)
    poll_interval: int = 30  # seconds between polls

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
