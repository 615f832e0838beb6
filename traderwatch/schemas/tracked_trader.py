"""Pydantic schemas for TrackedTrader API."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from traderwatch.utils.constants import MIN_POLL_INTERVAL, MAX_POLL_INTERVAL


class TrackedTraderCreate(BaseModel):
    trader_id: str = Field(min_length=1, max_length=50)
    name: str = Field(default="", max_length=100)
    is_active: bool = True
    poll_interval: int | None = Field(default=None, ge=MIN_POLL_INTERVAL, le=MAX_POLL_INTERVAL)

    @field_validator("trader_id")
    @classmethod
    def _validate_trader_id(cls, value: str) -> str:
        text = value.strip()
        if not text.isdigit():
            raise ValueError("must be a numeric Weex trader id")
        return text

    @field_validator("name")
    @classmethod
    def _trim_name(cls, value: str) -> str:
        return value.strip()


class TrackedTraderUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None
    poll_interval: int | None = Field(default=None, ge=MIN_POLL_INTERVAL, le=MAX_POLL_INTERVAL)


class TrackedTraderRead(BaseModel):
    id: int
    trader_id: str
    name: str
    is_active: bool
    poll_interval: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
