"""Shared fixtures: in-memory database, stores, and fake collaborators."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import traderwatch.models  # noqa: F401  registers tables
from traderwatch.engine.scheduler import TraderMonitor
from traderwatch.errors import NotificationError
from traderwatch.models.tracked_trader import TrackedTrader
from traderwatch.services.notifiers import Notifier
from traderwatch.services.position_source import OpenPosition, PositionSource
from traderwatch.stores import NotificationLogStore, PositionStore, TraderStore


class FakeSource(PositionSource):
    """Returns canned snapshots per trader id."""

    def __init__(self):
        self.snapshots: dict[str, list[OpenPosition]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    async def fetch_open_positions(self, trader_id: str) -> list[OpenPosition]:
        self.calls.append(trader_id)
        if trader_id in self.errors:
            raise self.errors[trader_id]
        return list(self.snapshots.get(trader_id, []))


class FakeNotifier(Notifier):
    """Records messages instead of sending them; fails when `error` is set."""

    name = "fake"

    def __init__(self, error: str | None = None):
        self.error = error
        self.sent: list[str] = []

    async def _deliver(self, message: str):
        if self.error:
            raise NotificationError(self.error)
        self.sent.append(message)


def make_position(position_id: str, symbol: str = "BTC/USDT", side: str = "LONG", **kwargs) -> OpenPosition:
    defaults = {
        "size": "0.5",
        "price": "65000.1",
        "leverage": "20",
        "open_time": "1700000000000",
        "contract_id": "10000001",
        "trader_name": "Alice",
    }
    defaults.update(kwargs)
    return OpenPosition(position_id=position_id, symbol=symbol, side=side, **defaults)


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; treat stored datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def trader_store(db_engine):
    return TraderStore(db_engine)


@pytest.fixture
def position_store(db_engine):
    return PositionStore(db_engine)


@pytest.fixture
def log_store(db_engine):
    return NotificationLogStore(db_engine)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def add_trader(db_engine):
    def _add(trader_id: str = "1001", poll_interval: int = 30, is_active: bool = True, name: str = "Alice"):
        trader = TrackedTrader(
            trader_id=trader_id, name=name, poll_interval=poll_interval, is_active=is_active
        )
        with Session(db_engine) as session:
            session.add(trader)
            session.commit()
            session.refresh(trader)
        return trader
    return _add


@pytest.fixture
def monitor(trader_store, position_store, log_store, source, notifier):
    return TraderMonitor(
        trader_store=trader_store,
        position_store=position_store,
        log_store=log_store,
        source=source,
        notifier=notifier,
    )
