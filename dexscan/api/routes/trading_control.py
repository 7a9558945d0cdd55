"""Auto-trading flag, demo mode and tunable settings routes."""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from dexscan.api.dependencies.services import get_autotrader, get_trading_service

router = APIRouter(tags=["trading-control"])

class AutoRequest(BaseModel):
    enabled: bool

class ModeRequest(BaseModel):
    demo: bool

class SettingsRequest(BaseModel):
    tp_percent: Optional[float] = None
    invest_percent: Optional[float] = None
    result_count: Optional[int] = None
    max_concurrent: Optional[int] = None
    auto_sell: Optional[bool] = None

@router.get("/auto")
async def get_auto(service=Depends(get_trading_service)):
    return {"auto": await service.get_auto()}

@router.post("/auto")
async def set_auto(request: AutoRequest, service=Depends(get_trading_service)):
    return {"ok": True, "auto": await service.set_auto(request.enabled)}

@router.get("/auto/status")
async def auto_status(autotrader=Depends(get_autotrader)):
    return autotrader.status()

@router.get("/mode")
async def get_mode(service=Depends(get_trading_service)):
    return {"demo": await service.get_mode()}

@router.post("/mode")
async def set_mode(request: ModeRequest, service=Depends(get_trading_service)):
    return {"ok": True, "demo": await service.set_mode(request.demo)}

@router.get("/settings")
async def get_settings(service=Depends(get_trading_service)):
    return await service.get_settings()

@router.post("/settings")
async def update_settings(request: SettingsRequest, service=Depends(get_trading_service)):
    changes = request.model_dump(exclude_none=True)
    return {"ok": True, "settings": await service.update_settings(changes)}

__all__ = ["router"]
