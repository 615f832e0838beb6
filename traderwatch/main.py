"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from traderwatch.config import settings
from traderwatch.database import create_db_and_tables, engine
from traderwatch.engine.scheduler import TraderMonitor
from traderwatch.errors import PositionFetchError
from traderwatch.services.notifiers import create_notifier
from traderwatch.services.weex_client import ContractMapper, WeexPositionSource
from traderwatch.stores import NotificationLogStore, PositionStore, TraderStore
from traderwatch.utils.logging import setup_logging
from traderwatch.api import traders, positions, notifications, system

logger = logging.getLogger(__name__)


def build_monitor(db_engine=engine) -> tuple[TraderMonitor, ContractMapper]:
    """Wire the monitor and its collaborators from settings."""
    mapper = ContractMapper(settings.weex_api_url, timeout=settings.weex_timeout_seconds)
    source = WeexPositionSource(
        settings.weex_api_url, mapper, timeout=settings.weex_timeout_seconds
    )
    monitor = TraderMonitor(
        trader_store=TraderStore(db_engine),
        position_store=PositionStore(db_engine),
        log_store=NotificationLogStore(db_engine),
        source=source,
        notifier=create_notifier(settings),
        tick_seconds=settings.tick_seconds,
        max_concurrent_polls=settings.max_concurrent_polls,
    )
    return monitor, mapper


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()

    monitor, mapper = build_monitor()
    try:
        await mapper.load()
    except PositionFetchError as e:
        logger.error(f"Failed to load contract mappings (continuing with raw ids): {e}")

    app.state.monitor = monitor
    monitor.start()

    yield

    await monitor.stop()
    await monitor.drain()
    await monitor.source.close()


app = FastAPI(
    title="Trader Watch",
    description="Polls tracked Weex traders and notifies on opened and closed positions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(traders.router)
app.include_router(positions.router)
app.include_router(notifications.router)
app.include_router(system.router)
