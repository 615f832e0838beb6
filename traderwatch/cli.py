"""CLI tool for admin operations.

Usage:
    python -m traderwatch.cli add-trader
    python -m traderwatch.cli test-notify [message]
    python -m traderwatch.cli serve [host] [port]
"""

import asyncio
import sys

import uvicorn
from sqlmodel import Session, select

from traderwatch.config import settings
from traderwatch.database import engine, create_db_and_tables
from traderwatch.errors import ConfigError, NotificationError
from traderwatch.models.tracked_trader import TrackedTrader
from traderwatch.services.notifiers import create_notifier
from traderwatch.utils.constants import MIN_POLL_INTERVAL


def add_trader():
    """Start tracking a trader."""
    create_db_and_tables()

    trader_id = input("Weex trader id: ").strip()
    if not trader_id.isdigit():
        print("Trader id must be numeric.")
        sys.exit(1)

    with Session(engine) as session:
        existing = session.exec(
            select(TrackedTrader).where(TrackedTrader.trader_id == trader_id)
        ).first()
        if existing:
            print(f"Trader '{trader_id}' is already tracked.")
            sys.exit(1)

    name = input("Display name: ").strip()
    raw_interval = input(f"Poll interval in seconds [{settings.default_poll_interval}]: ").strip()
    interval = int(raw_interval) if raw_interval.isdigit() else settings.default_poll_interval
    if interval < MIN_POLL_INTERVAL:
        print(f"Poll interval must be at least {MIN_POLL_INTERVAL}s.")
        sys.exit(1)

    trader = TrackedTrader(trader_id=trader_id, name=name, poll_interval=interval)
    with Session(engine) as session:
        session.add(trader)
        session.commit()

    print(f"\nNow tracking trader '{trader_id}' every {interval}s.")
    print("A running service picks it up on its next tick.")


def test_notify(message: str):
    """Send a message through the configured notifier."""
    try:
        notifier = create_notifier(settings)
    except ConfigError as e:
        print(f"Notifier misconfigured: {e}")
        sys.exit(1)

    try:
        asyncio.run(notifier.send(message))
    except NotificationError as e:
        print(f"Send failed: {e}")
        sys.exit(1)
    print(f"Sent via {notifier.name}.")


def serve(host: str = "127.0.0.1", port: int = 8000):
    """Run the API and the monitor under uvicorn."""
    uvicorn.run("traderwatch.main:app", host=host, port=port, log_config=None)


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m traderwatch.cli <command>")
        print("Commands: add-trader, test-notify [message], serve [host] [port]")
        sys.exit(1)

    command = sys.argv[1]
    if command == "add-trader":
        add_trader()
    elif command == "test-notify":
        message = " ".join(sys.argv[2:]) or "traderwatch test notification"
        test_notify(message)
    elif command == "serve":
        host = sys.argv[2] if len(sys.argv) > 2 else "127.0.0.1"
        port = int(sys.argv[3]) if len(sys.argv) > 3 else 8000
        serve(host, port)
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
