"""Chain RPC reads through web3's async client."""

from __future__ import annotations

import logging
from typing import Any, Optional

from web3 import AsyncWeb3

from ...domain.entities import ChainReceipt, ChainTransaction
from ...domain.errors import ChainQueryError

logger = logging.getLogger(__name__)


def _hex(value: Any) -> str:
    if hasattr(value, "to_0x_hex"):
        return value.to_0x_hex()
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


class Web3ChainClient:
    """Implements ``ChainClientProtocol`` over an ``AsyncWeb3`` instance.

    Every failure, including a transaction that has not propagated yet, is
    raised as ``ChainQueryError``.
    """

    def __init__(self, rpc_url: str, *, timeout: float = 10.0, w3: Optional[AsyncWeb3] = None):
        self.rpc_url = rpc_url
        self.w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        )

    async def get_transaction(self, tx_hash: str) -> ChainTransaction:
        try:
            tx = await self.w3.eth.get_transaction(tx_hash)
        except Exception as e:
            raise ChainQueryError(f"Failed to fetch transaction {tx_hash}: {e}") from e
        return ChainTransaction(
            tx_hash=_hex(tx.get("hash", tx_hash)),
            sender=str(tx["from"]),
            recipient=str(tx["to"]) if tx.get("to") else None,
            value=int(tx["value"]),
        )

    async def get_transaction_receipt(self, tx_hash: str) -> ChainReceipt:
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except Exception as e:
            raise ChainQueryError(f"Failed to fetch receipt {tx_hash}: {e}") from e
        return ChainReceipt(
            tx_hash=_hex(receipt.get("transactionHash", tx_hash)),
            succeeded=int(receipt["status"]) == 1,
            block_number=int(receipt["blockNumber"]),
        )

    async def get_block_number(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except Exception as e:
            raise ChainQueryError(f"Failed to fetch block number: {e}") from e

    async def aclose(self) -> None:
        """Close the provider's pooled HTTP session."""
        await self.w3.provider.disconnect()
