"""System API: health check, monitor status, cache refresh, manual trigger."""

from fastapi import APIRouter, Depends, HTTPException

from traderwatch.api.deps import get_monitor
from traderwatch.engine.scheduler import TraderMonitor

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/monitor")
def monitor_status(monitor: TraderMonitor = Depends(get_monitor)):
    """Current monitor state with per-trader last checks."""
    return monitor.status()


@router.post("/refresh-cache")
def refresh_cache(monitor: TraderMonitor = Depends(get_monitor)):
    """Forget every last check so all active traders are polled on the next tick."""
    monitor.refresh_all()
    return {"status": "ok"}


@router.post("/trigger/{trader_id}")
async def trigger_trader(trader_id: str, monitor: TraderMonitor = Depends(get_monitor)):
    """Manually run one poll cycle for a trader."""
    try:
        result = await monitor.trigger(trader_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Trader not found")
    if result is None:
        return {"status": "skipped", "message": f"Cycle skipped for trader {trader_id}, see logs"}
    return {
        "status": "ok",
        "opened": len(result.opened),
        "closed": len(result.closed),
        "notified": [d.delivered for d in result.dispatches],
    }
