from typing import List

from dexscan.models.market_models import Signal
from dexscan.persistence.store import RecordStore

SCAN_RESULTS = "scan_results"


class ScanResultsStore:
    """Last scan snapshot; each scan supersedes the previous one."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def save(self, signals: List[Signal]) -> None:
        await self.store.write(SCAN_RESULTS, [s.to_dict() for s in signals])

    async def load(self) -> List[Signal]:
        rows = await self.store.read(SCAN_RESULTS, [])
        return [Signal.from_dict(r) for r in rows or []]
