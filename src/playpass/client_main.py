from __future__ import annotations

import asyncio
import logging

from eth_account import Account
from web3 import AsyncWeb3

from .client.orchestrator.runner import PaymentOrchestrator
from .client.orchestrator.state import PaymentSession, PaymentState, RetryPolicy
from .client.preferences import AutoPromptPreferences
from .client.wallet import LocalAccountWallet
from .envs.client_env import get_settings
from .infrastructure.payments_client import PaymentsApiClient
from .infrastructure.storage import JsonFileKeyValueStore

TERMINAL_STATES = (PaymentState.CONFIRMED, PaymentState.FAILED)


async def run() -> int:
    settings = get_settings()
    account = Account.from_key(settings.private_key)
    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))
    wallet = LocalAccountWallet(
        account,
        w3,
        settings.chain_id,
        confirmation_timeout=settings.confirmation_timeout,
    )

    print(f"Wallet: {wallet.address}")
    print(f"API: {settings.api_base_url}")
    if not await wallet.is_on_expected_chain():
        print(f"RPC {settings.rpc_url} is not on chain {settings.chain_id}")
        return 2

    def on_confirmed(session: PaymentSession) -> None:
        print(f"Payment confirmed (tx {session.tx_hash}). Enjoy your game!")

    async with PaymentsApiClient(settings.api_base_url) as gateway:
        orchestrator = PaymentOrchestrator(
            gateway,
            wallet,
            preferences=AutoPromptPreferences(
                JsonFileKeyValueStore(settings.preferences_path)
            ),
            on_confirmed=on_confirmed,
            policy=RetryPolicy(auto_prompt=settings.auto_prompt),
        )
        try:
            await orchestrator.start()
            state = await orchestrator.wait_for(
                PaymentState.QUOTE_READY,
                PaymentState.AWAITING_SIGNATURE,
                *TERMINAL_STATES,
            )
            if state is PaymentState.QUOTE_READY:
                intent = orchestrator.session.intent
                assert intent is not None
                print(
                    f"Quote: {intent.eth_amount} ETH (~£{intent.gbp_amount})"
                    f"{' [fallback price]' if intent.is_fallback_price else ''}"
                )
                await orchestrator.request_payment()

            state = await orchestrator.wait_for(*TERMINAL_STATES)
            if state is PaymentState.FAILED:
                session = orchestrator.session
                print(f"Payment failed: {session.error}")
                print(f"Next step: {session.recovery_action.value if session.recovery_action else '-'}")
                return 1
            return 0
        finally:
            await orchestrator.teardown()


def main() -> None:
    """Entry point for the command-line payment client."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()
