"""FastAPI application configuration (PlayPass payments API)."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from ..crypto.tokens import PaymentTokenService
from ..domain.replay_guard import ReplayGuard
from ..domain.shared import ChainClientProtocol, PriceOracleProtocol
from ..envs.server_env import ServerConfig, get_settings
from .dependencies import PaymentComponents, build_components
from .routers import payments

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ServerConfig] = None,
    *,
    replay_guard: Optional[ReplayGuard] = None,
    chain_client: Optional[ChainClientProtocol] = None,
    price_oracle: Optional[PriceOracleProtocol] = None,
    token_service: Optional[PaymentTokenService] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    The configuration is validated once here. A misconfigured service still
    starts so the health endpoint can report it; payment routes fail closed.
    """
    config = config or get_settings()
    api = config.api

    components: Optional[PaymentComponents] = None
    if config.is_valid:
        components = build_components(
            config.require_payments(),
            replay_guard=replay_guard,
            chain_client=chain_client,
            price_oracle=price_oracle,
            token_service=token_service,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if components is not None:
            await components.aclose()

    app = FastAPI(
        title=api.app_name,
        version=api.app_version,
        description="PlayPass pay-per-play payments API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.server_config = config
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(payments.router)
    app.mount("/metrics", make_asgi_app())

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {api.app_name} API",
            "version": api.app_version,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy" if config.is_valid else "misconfigured",
            "service": api.app_name,
            "version": api.app_version,
        }

    return app


app = create_app()
