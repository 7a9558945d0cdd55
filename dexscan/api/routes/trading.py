"""Scan, balance and position routes."""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from dexscan.api.dependencies.services import get_trading_service

router = APIRouter(tags=["trading"])

class BuyRequest(BaseModel):
    symbol: str = Field(..., min_length=1, description="Quote-denominated pair, e.g. BTCUSDT")
    percent: Optional[float] = Field(None, gt=0, le=100, description="Percent of quote balance to invest")

class SellRequest(BaseModel):
    trade_id: str = Field(..., min_length=1)
    exit_price: Optional[float] = Field(None, gt=0, description="Explicit exit price override")

@router.post("/scan/run")
async def run_scan(service=Depends(get_trading_service)):
    return await service.run_scan()

@router.get("/scan/results")
async def scan_results(service=Depends(get_trading_service)):
    return await service.last_scan_results()

@router.get("/balance")
async def balance(service=Depends(get_trading_service)):
    return await service.balance()

@router.get("/trades")
async def trades(service=Depends(get_trading_service)):
    return await service.list_positions()

@router.post("/trade/buy")
async def buy(request: BuyRequest, service=Depends(get_trading_service)):
    return await service.open_position(request.symbol.upper(), request.percent)

@router.post("/trade/sell")
async def sell(request: SellRequest, service=Depends(get_trading_service)):
    return await service.close_position(request.trade_id, request.exit_price)

@router.get("/coins")
async def coins(service=Depends(get_trading_service)):
    return await service.top_coins()

@router.get("/header")
async def header(service=Depends(get_trading_service)):
    return await service.header()

__all__ = ["router"]
