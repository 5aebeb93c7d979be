"""Replay guard domain interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


def normalize_tx_hash(tx_hash: str) -> str:
    return tx_hash.lower()


class ReplayGuard(ABC):
    """Tracks transaction hashes that have already granted a ticket.

    Implementations must make ``mark_used_if_absent`` a single atomic
    test-and-set so two concurrent verifications of the same hash cannot both
    observe it as unused.
    """

    @abstractmethod
    async def is_used(self, tx_hash: str) -> bool:
        """Return True if a ticket was already granted for ``tx_hash``."""
        pass

    @abstractmethod
    async def mark_used_if_absent(self, tx_hash: str) -> bool:
        """Record ``tx_hash``; return True only if this call recorded it."""
        pass

    async def mark_used(self, tx_hash: str) -> None:
        await self.mark_used_if_absent(tx_hash)
