"""Persistence of the runtime trading configuration."""
import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict

from dexscan.errors import InvalidSettings
from dexscan.models.trade_models import TradingConfig
from dexscan.persistence.store import RecordStore

logger = logging.getLogger("config_store")

CONFIG = "config"
SETTINGS_KEYS = ("tp_percent", "invest_percent", "result_count", "max_concurrent", "auto_sell")


def _validate(changes: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - set(SETTINGS_KEYS)
    if unknown:
        raise InvalidSettings(f"Unknown settings: {sorted(unknown)}")
    clean: Dict[str, Any] = {}
    for key, value in changes.items():
        if key == "auto_sell":
            clean[key] = bool(value)
            continue
        try:
            number = float(value) if key.endswith("percent") else int(value)
        except (TypeError, ValueError):
            raise InvalidSettings(f"{key} must be numeric")
        if key.endswith("percent") and not 0 < number <= 100:
            raise InvalidSettings(f"{key} must be within (0, 100]")
        if not key.endswith("percent") and number < 1:
            raise InvalidSettings(f"{key} must be >= 1")
        clean[key] = number
    return clean


class ConfigStore:
    def __init__(self, store: RecordStore, defaults: TradingConfig = None):
        self.store = store
        self.defaults = defaults or TradingConfig()
        self._lock = asyncio.Lock()

    async def load(self) -> TradingConfig:
        raw = await self.store.read(CONFIG, None)
        if raw is None:
            return replace(self.defaults)
        return TradingConfig.from_dict(raw, self.defaults)

    async def _mutate(self, **changes) -> TradingConfig:
        async with self._lock:
            cfg = replace(await self.load(), **changes)
            await self.store.write(CONFIG, cfg.to_dict())
        logger.info("Config updated: %s", changes)
        return cfg

    async def set_auto(self, enabled: bool) -> TradingConfig:
        return await self._mutate(auto_enabled=bool(enabled))

    async def set_demo(self, demo: bool) -> TradingConfig:
        return await self._mutate(demo=bool(demo))

    async def update_settings(self, changes: Dict[str, Any]) -> TradingConfig:
        return await self._mutate(**_validate(changes))
