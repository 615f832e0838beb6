"""Database models."""

from traderwatch.models.tracked_trader import TrackedTrader
from traderwatch.models.position_record import PositionRecord, PositionStatus
from traderwatch.models.notification_log import NotificationLog, EventType, DeliveryStatus

__all__ = [
    "TrackedTrader",
    "PositionRecord",
    "PositionStatus",
    "NotificationLog",
    "EventType",
    "DeliveryStatus",
]
