"""Shared API dependencies."""

from fastapi import HTTPException, Request, status

from traderwatch.engine.scheduler import TraderMonitor


def get_monitor(request: Request) -> TraderMonitor:
    """Return the running TraderMonitor attached to the app."""
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Monitor not running",
        )
    return monitor
