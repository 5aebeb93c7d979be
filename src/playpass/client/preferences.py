"""Per-wallet "don't auto-prompt me again" flag."""

from __future__ import annotations

from ..infrastructure.storage import KeyValueStore

AUTOPAY_DISABLED_KEY_PREFIX = "autopay_disabled:"


def autopay_key(wallet_address: str) -> str:
    return f"{AUTOPAY_DISABLED_KEY_PREFIX}{wallet_address.lower()}"


class AutoPromptPreferences:
    """Remembers wallets that cancelled a signature prompt.

    Keys are case-insensitive in the wallet address.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def is_disabled(self, wallet_address: str) -> bool:
        return await self._store.get(autopay_key(wallet_address)) == "1"

    async def disable(self, wallet_address: str) -> None:
        await self._store.set(autopay_key(wallet_address), "1")

    async def enable(self, wallet_address: str) -> None:
        await self._store.delete(autopay_key(wallet_address))
