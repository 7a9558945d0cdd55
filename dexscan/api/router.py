"""Unified API router aggregator.

Adds all individual feature routers here to keep `app.py` clean.
"""
from fastapi import APIRouter

from dexscan.api.routes.system import router as system_router
from dexscan.api.routes.trading import router as trading_router
from dexscan.api.routes.trading_control import router as trading_control_router

api_router = APIRouter()
api_router.include_router(system_router)
api_router.include_router(trading_router)
api_router.include_router(trading_control_router)

__all__ = ["api_router"]
