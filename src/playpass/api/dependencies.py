"""FastAPI dependencies for the payments API.

Everything here is built once in ``create_app`` from the startup
``ServerConfig`` and stored on ``app.state``; request handlers only read it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..application.use_cases.intent import IntentService
from ..application.use_cases.verification import VerificationService
from ..crypto.tokens import PaymentTokenService
from ..domain.replay_guard import ReplayGuard
from ..domain.shared import ChainClientProtocol, PriceOracleProtocol
from ..envs.server_env import PaymentSettings, ServerConfig
from ..infrastructure.chain.web3_chain_client import Web3ChainClient
from ..infrastructure.database import DatabaseClient, RedisUrlSettings
from ..infrastructure.http.http_client import AsyncHttpClient
from ..infrastructure.price.coingecko_oracle import CoinGeckoPriceOracle
from ..infrastructure.replay_guard_impl import InMemoryReplayGuard, KeyValueReplayGuard
from ..infrastructure.storage import RedisKeyValueStore


@dataclass
class PaymentComponents:
    """Long-lived collaborators shared by every request of this process."""

    intent_service: IntentService
    verification_service: VerificationService
    replay_guard: ReplayGuard
    http_client: Optional[AsyncHttpClient] = None
    db_client: Optional[DatabaseClient] = None
    chain_client: Optional[Web3ChainClient] = None

    async def aclose(self) -> None:
        if self.chain_client is not None:
            await self.chain_client.aclose()
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.db_client is not None:
            await self.db_client.close()


def build_components(
    settings: PaymentSettings,
    *,
    replay_guard: Optional[ReplayGuard] = None,
    chain_client: Optional[ChainClientProtocol] = None,
    price_oracle: Optional[PriceOracleProtocol] = None,
    token_service: Optional[PaymentTokenService] = None,
) -> PaymentComponents:
    """Wire services from validated settings; explicit collaborators win."""
    http_client: Optional[AsyncHttpClient] = None
    db_client: Optional[DatabaseClient] = None
    owned_chain_client: Optional[Web3ChainClient] = None

    if replay_guard is None:
        if settings.replay_store_url:
            db_client = DatabaseClient(RedisUrlSettings(settings.replay_store_url))
            replay_guard = KeyValueReplayGuard(RedisKeyValueStore(db_client))
        else:
            replay_guard = InMemoryReplayGuard()

    if chain_client is None:
        chain_client = owned_chain_client = Web3ChainClient(settings.rpc_url)

    if price_oracle is None:
        http_client = AsyncHttpClient(timeout=settings.price_feed_timeout)
        price_oracle = CoinGeckoPriceOracle(
            http_client, settings.price_feed_url, settings.fallback_eth_gbp_rate
        )

    if token_service is None:
        token_service = PaymentTokenService(settings.signing_secret)
    return PaymentComponents(
        intent_service=IntentService(settings, token_service, price_oracle),
        verification_service=VerificationService(
            token_service,
            replay_guard,
            chain_client,
            chain_id=settings.chain_id,
            min_confirmations=settings.min_confirmations,
        ),
        replay_guard=replay_guard,
        http_client=http_client,
        db_client=db_client,
        chain_client=owned_chain_client,
    )


def get_server_config(request: Request) -> ServerConfig:
    """Get the configuration validated at startup."""
    return request.app.state.server_config


def _components(request: Request) -> Optional[PaymentComponents]:
    return getattr(request.app.state, "components", None)


def get_intent_service(request: Request) -> Optional[IntentService]:
    """Get intent service, or None when the service is misconfigured."""
    components = _components(request)
    return components.intent_service if components else None


def get_verification_service(request: Request) -> Optional[VerificationService]:
    """Get verification service, or None when the service is misconfigured."""
    components = _components(request)
    return components.verification_service if components else None
