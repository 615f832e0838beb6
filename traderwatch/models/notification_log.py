"""NotificationLog model: delivery bookkeeping for one position event."""

from datetime import datetime, timezone
from enum import Enum

from sqlmodel import SQLModel, Field


class EventType(str, Enum):
    OPENED = "OPENED"
    CLOSED = "CLOSED"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class NotificationLog(SQLModel, table=True):
    __tablename__ = "notification_log"

    id: int | None = Field(default=None, primary_key=True)
    trader_id: str = Field(index=True, max_length=50)
    position_id: str = Field(max_length=50)
    event_type: EventType = Field(index=True)
    status: DeliveryStatus = Field(default=DeliveryStatus.PENDING, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None
