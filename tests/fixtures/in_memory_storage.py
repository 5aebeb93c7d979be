"""In-memory implementation of KeyValueStore for testing."""

from __future__ import annotations

from typing import Optional

from playpass.infrastructure.storage import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """In-memory implementation of KeyValueStore for fast testing."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def set_if_absent(self, key: str, value: str) -> bool:
        if key in self._data:
            return False
        self._data[key] = value
        return True

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def delete(self, key: str) -> int:
        if key in self._data:
            del self._data[key]
            return 1
        return 0

    def keys(self) -> list[str]:
        return list(self._data)

    def clear(self) -> None:
        """Clear all data (useful for test teardown)."""
        self._data.clear()
