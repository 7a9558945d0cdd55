"""Flat durable record stores.

A store holds named collections (trades, config, scan_results) and only
supports whole-collection read and whole-collection write. Serializing
read-modify-write cycles is the caller's job (see TradeLedger).
"""
import asyncio
import copy
import json
import logging
import os
import threading
from typing import Any, Dict

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, select

logger = logging.getLogger("store")


class RecordStore:
    async def read(self, name: str, default: Any = None) -> Any:
        raise NotImplementedError

    async def write(self, name: str, value: Any) -> None:
        raise NotImplementedError


class MemoryRecordStore(RecordStore):
    """Process-local store; values are deep-copied so callers never share state."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self.writes = 0

    def describe(self):
        return {"backend": "memory"}

    async def read(self, name, default=None):
        if name not in self._data:
            return copy.deepcopy(default)
        return copy.deepcopy(self._data[name])

    async def write(self, name, value):
        self._data[name] = copy.deepcopy(value)
        self.writes += 1


class JsonFileStore(RecordStore):
    """One JSON file per collection under `data_dir`, replaced atomically on write.

    File I/O runs in the default executor so a large write never stalls the
    event loop.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self._lock = threading.Lock()
        os.makedirs(self.data_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.data_dir, f"{name}.json")

    def describe(self):
        return {"backend": "json", "data_dir": os.path.abspath(self.data_dir)}

    async def read(self, name, default=None):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self._read_sync(name, default))

    async def write(self, name, value):
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, lambda: self._write_sync(name, value))

    def _read_sync(self, name, default=None):
        path = self._path(name)
        with self._lock:
            if not os.path.exists(path):
                return copy.deepcopy(default)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                logger.error("Corrupt store file %s: %s", path, e)
                raise

    def _write_sync(self, name, value):
        path = self._path(name)
        tmp_path = path + ".tmp"
        with self._lock:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)


metadata = MetaData()

records = Table(
    'records', metadata,
    Column('name', String, primary_key=True),
    Column('payload', Text, nullable=False),
)


class SqlRecordStore(RecordStore):
    """Collections stored as JSON blobs in a single `records` table."""

    def __init__(self, url: str):
        self.url = url
        self.engine = create_engine(url)
        metadata.create_all(self.engine)
        logger.info("Record store ready on %s", self.engine.url.render_as_string(hide_password=True))

    def describe(self):
        return {"backend": "sql", "url": self.engine.url.render_as_string(hide_password=True)}

    async def read(self, name, default=None):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self._read_sync(name, default))

    async def write(self, name, value):
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, lambda: self._write_sync(name, value))

    def _read_sync(self, name, default=None):
        with self.engine.connect() as conn:
            row = conn.execute(select(records.c.payload).where(records.c.name == name)).first()
        if row is None:
            return copy.deepcopy(default)
        return json.loads(row[0])

    def _write_sync(self, name, value):
        payload = json.dumps(value)
        with self.engine.begin() as conn:
            conn.execute(records.delete().where(records.c.name == name))
            conn.execute(records.insert().values(name=name, payload=payload))


def build_store(store_url: str = "", data_dir: str = "./data") -> RecordStore:
    if store_url:
        return SqlRecordStore(store_url)
    return JsonFileStore(data_dir)


__all__ = ["RecordStore", "MemoryRecordStore", "JsonFileStore", "SqlRecordStore", "build_store"]
