"""Replay guard implementations: process-local set and key-value store."""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime, timezone

from ..domain.replay_guard import ReplayGuard, normalize_tx_hash
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class InMemoryReplayGuard(ReplayGuard):
    """Process-local, volatile replay guard for single-instance deployments.

    A restarted or second instance starts empty, so multi-instance deployments
    should use ``KeyValueReplayGuard`` instead.
    """

    def __init__(self) -> None:
        self._used: set[str] = set()
        self._lock = threading.Lock()
        self.instance_id = secrets.token_hex(3)
        self.created_at = datetime.now(timezone.utc)

    async def is_used(self, tx_hash: str) -> bool:
        with self._lock:
            used = normalize_tx_hash(tx_hash) in self._used
        if used:
            logger.info("[store:%s] TxHash already used: %s...", self.instance_id, tx_hash[:18])
        return used

    async def mark_used_if_absent(self, tx_hash: str) -> bool:
        normalized = normalize_tx_hash(tx_hash)
        with self._lock:
            if normalized in self._used:
                return False
            self._used.add(normalized)
            total = len(self._used)
        logger.info(
            "[store:%s] Marked txHash as used: %s... (total in instance: %d)",
            self.instance_id,
            tx_hash[:18],
            total,
        )
        return True

    def used_count(self) -> int:
        with self._lock:
            return len(self._used)

    def info(self) -> dict[str, object]:
        return {
            "instance_id": self.instance_id,
            "created_at": self.created_at.isoformat(),
            "tx_count": self.used_count(),
        }


class KeyValueReplayGuard(ReplayGuard):
    """Durable replay guard shared by every instance pointing at the same store.

    Keys:
      - replay:tx:{lower-cased hash} -> "1" (never expires)
    """

    def __init__(self, store: KeyValueStore, prefix: str = "replay:tx:"):
        self.store = store
        self._prefix = prefix

    def _key(self, tx_hash: str) -> str:
        return f"{self._prefix}{normalize_tx_hash(tx_hash)}"

    async def is_used(self, tx_hash: str) -> bool:
        return await self.store.exists(self._key(tx_hash))

    async def mark_used_if_absent(self, tx_hash: str) -> bool:
        recorded = await self.store.set_if_absent(self._key(tx_hash), "1")
        if recorded:
            logger.info("Marked txHash as used: %s...", tx_hash[:18])
        return recorded
