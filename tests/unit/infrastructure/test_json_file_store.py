"""Tests for the JSON-file key-value store."""

from __future__ import annotations

import json

from playpass.infrastructure.storage import JsonFileKeyValueStore


async def test_missing_file_reads_empty(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path / "prefs.json")

    assert await store.get("a") is None
    assert not await store.exists("a")
    assert await store.delete("a") == 0


async def test_values_persist_across_instances(tmp_path) -> None:
    path = tmp_path / "nested" / "prefs.json"
    await JsonFileKeyValueStore(path).set("a", "1")

    reopened = JsonFileKeyValueStore(path)

    assert await reopened.get("a") == "1"
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}


async def test_set_if_absent(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path / "prefs.json")

    assert await store.set_if_absent("k", "first") is True
    assert await store.set_if_absent("k", "second") is False
    assert await store.get("k") == "first"


async def test_delete(tmp_path) -> None:
    path = tmp_path / "prefs.json"
    store = JsonFileKeyValueStore(path)
    await store.set("k", "v")

    assert await store.delete("k") == 1
    assert await JsonFileKeyValueStore(path).get("k") is None
