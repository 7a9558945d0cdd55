"""System & metadata routes (root, health, status, startup log)."""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends
from dexscan.api.dependencies.services import ServiceRegistry, get_service_registry
from dexscan.api.state.startup import degraded_components, get_startup_events

router = APIRouter()

@router.get("/")
async def root(registry: ServiceRegistry = Depends(get_service_registry)):
    return {
        "name": "DexScan",
        "version": "1.0.0",
        "description": "Multi-timeframe spot scanner and autonomous trader",
        "services": registry.names(),
        "endpoints": {
            "health": "/health",
            "status": "/status",
            "startup_events": "/startup/log",
            "docs": "/docs",
            "scan": "/scan/run",
            "trades": "/trades",
        },
    }

@router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

@router.get("/status")
async def status(registry: ServiceRegistry = Depends(get_service_registry)):
    return {"services": registry.all_status(), "degraded": degraded_components()}

@router.get("/startup/log")
async def startup_log(limit: int = 100, kind: Optional[str] = None):
    return {"events": get_startup_events(limit, kind), "degraded": degraded_components()}

__all__ = ["router"]
