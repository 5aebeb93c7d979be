"""Storage abstractions with Redis and JSON-file implementations."""

from __future__ import annotations

import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .database import DatabaseClient


class KeyValueStore(ABC):
    """Abstract key-value store with the minimal operations used by the service."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def set_if_absent(self, key: str, value: str) -> bool:
        """Atomically set ``key`` only if it does not exist; True if it was set."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> int:
        pass


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed implementation of KeyValueStore."""

    def __init__(self, db_client: DatabaseClient):
        self._db_client = db_client

    async def get(self, key: str) -> Optional[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._db_client.get_connection() as conn:
            await conn.set(key, value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        async with self._db_client.get_connection() as conn:
            # SET NX returns None when the key already exists.
            return bool(await conn.set(key, value, nx=True))

    async def exists(self, key: str) -> bool:
        async with self._db_client.get_connection() as conn:
            return bool(await conn.exists(key))

    async def delete(self, key: str) -> int:
        async with self._db_client.get_connection() as conn:
            return await conn.delete(key)


class JsonFileKeyValueStore(KeyValueStore):
    """Small single-process store persisted to a JSON file.

    Used on the client side for per-wallet preferences.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._data: Optional[dict[str, str]] = None

    def _load(self) -> dict[str, str]:
        if self._data is None:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as fh:
                    self._data = {str(k): str(v) for k, v in json.load(fh).items()}
            else:
                self._data = {}
        return self._data

    def _flush(self) -> None:
        assert self._data is not None
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(self._data, fh, indent=2, sort_keys=True)
        os.replace(tmp, self._path)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._load()[key] = value
            self._flush()

    async def set_if_absent(self, key: str, value: str) -> bool:
        async with self._lock:
            data = self._load()
            if key in data:
                return False
            data[key] = value
            self._flush()
            return True

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return key in self._load()

    async def delete(self, key: str) -> int:
        async with self._lock:
            data = self._load()
            if key not in data:
                return 0
            del data[key]
            self._flush()
            return 1
