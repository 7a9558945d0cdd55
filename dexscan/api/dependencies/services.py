"""Service registry and dependency providers for FastAPI routes."""
from __future__ import annotations
import logging
from typing import Any, Dict
from dexscan.errors import ServiceUnavailable

logger = logging.getLogger("services")


class ServiceRegistry:
    """Named components built by the lifespan (`trading`, `autotrader`).

    A name registered as None is known but not running; routes that need it
    get a ServiceUnavailable error (HTTP 503).
    """

    def __init__(self) -> None:
        self._services: Dict[str, Any] = {}

    def register(self, name: str, service: Any) -> None:
        self._services[name] = service

    def get(self, name: str) -> Any:
        service = self._services.get(name)
        if service is None:
            raise ServiceUnavailable(f"Service '{name}' not available")
        return service

    def names(self):
        return [name for name, svc in self._services.items() if svc is not None]

    def all_status(self) -> Dict[str, Dict[str, Any]]:
        status: Dict[str, Dict[str, Any]] = {}
        for name, svc in self._services.items():
            if svc is None:
                status[name] = {"error": f"{name} service not initialized"}
                continue
            report = getattr(svc, "status", None)
            if report is None:
                status[name] = {"state": "unknown"}
                continue
            try:
                status[name] = report()
            except Exception as e:
                logger.exception("status() of %s failed", name)
                status[name] = {"error": str(e)}
        return status


service_registry = ServiceRegistry()

# FastAPI dependency providers

def get_service_registry() -> ServiceRegistry:
    return service_registry

def get_trading_service():
    return service_registry.get("trading")

def get_autotrader():
    return service_registry.get("autotrader")

__all__ = ["ServiceRegistry", "service_registry", "get_service_registry", "get_trading_service", "get_autotrader"]
