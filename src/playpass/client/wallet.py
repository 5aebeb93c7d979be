"""Wallet backed by a local private key, for the command-line client."""

from __future__ import annotations

import logging

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from ..domain.errors import WalletProviderError

logger = logging.getLogger(__name__)

# Gas for a plain value transfer.
TRANSFER_GAS = 21_000


class LocalAccountWallet:
    """Signs value transfers with an ``eth_account`` key and broadcasts them.

    Implements ``WalletProtocol``. Provider failures are re-raised as
    ``WalletProviderError`` chained to the original exception.
    """

    def __init__(
        self,
        account: LocalAccount,
        w3: AsyncWeb3,
        chain_id: int,
        *,
        confirmation_timeout: float = 120.0,
        poll_interval: float = 2.0,
    ):
        self.account = account
        self.w3 = w3
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval

    @property
    def address(self) -> str:
        return self.account.address

    async def is_on_expected_chain(self) -> bool:
        return int(await self.w3.eth.chain_id) == self.chain_id

    async def send_transaction(self, to: str, value_wei: int) -> str:
        try:
            nonce = await self.w3.eth.get_transaction_count(self.account.address)
            gas_price = await self.w3.eth.gas_price
            signed = self.account.sign_transaction(
                {
                    "to": AsyncWeb3.to_checksum_address(to),
                    "value": value_wei,
                    "gas": TRANSFER_GAS,
                    "gasPrice": gas_price,
                    "nonce": nonce,
                    "chainId": self.chain_id,
                }
            )
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise WalletProviderError(f"Transaction failed: {e}") from e
        return AsyncWeb3.to_hex(tx_hash)

    async def wait_for_confirmation(self, tx_hash: str) -> None:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.confirmation_timeout,
                poll_latency=self.poll_interval,
            )
        except Exception as e:
            raise WalletProviderError(f"Confirmation wait failed: {e}") from e
        if int(receipt["status"]) != 1:
            raise WalletProviderError(f"Transaction {tx_hash} reverted")
        logger.info("Transaction %s mined in block %s", tx_hash, receipt["blockNumber"])
