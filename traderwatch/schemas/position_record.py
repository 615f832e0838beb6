"""Pydantic schemas for position records and notification logs."""

from datetime import datetime
from pydantic import BaseModel

from traderwatch.models.notification_log import DeliveryStatus, EventType
from traderwatch.models.position_record import PositionStatus


class PositionRecordRead(BaseModel):
    id: int
    trader_id: str
    trader_name: str
    position_id: str
    contract_id: str
    symbol: str
    status: PositionStatus
    side: str
    size: str
    open_price: str
    leverage: str
    first_seen_at: datetime
    last_seen_at: datetime
    closed_at: datetime | None

    model_config = {"from_attributes": True}


class NotificationLogRead(BaseModel):
    id: int
    trader_id: str
    position_id: str
    event_type: EventType
    status: DeliveryStatus
    created_at: datetime
    error: str | None

    model_config = {"from_attributes": True}


class PositionRecordPage(BaseModel):
    total: int
    items: list[PositionRecordRead]


class NotificationLogPage(BaseModel):
    total: int
    items: list[NotificationLogRead]


class PositionStats(BaseModel):
    total: int
    active: int
    closed: int
