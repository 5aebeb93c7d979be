"""Protocol interfaces for the external collaborators of the payment service.

Services accept any implementation satisfying these protocols, which keeps them
testable with in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from ..entities import ChainReceipt, ChainTransaction, PriceQuote


class ChainClientProtocol(Protocol):
    """Read-only view of the chain used by the verifier.

    Implementations raise ``ChainQueryError`` when a query cannot be answered,
    including when the transaction has not propagated yet.
    """

    async def get_transaction(self, tx_hash: str) -> ChainTransaction:
        ...

    async def get_transaction_receipt(self, tx_hash: str) -> ChainReceipt:
        ...

    async def get_block_number(self) -> int:
        ...


class PriceOracleProtocol(Protocol):
    """Supplies the ETH/GBP exchange rate. Never raises."""

    async def get_eth_gbp_price(self) -> PriceQuote:
        ...
