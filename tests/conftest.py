"""Shared pytest fixtures for payment tests."""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from playpass.crypto.tokens import PaymentTokenService
from playpass.envs.server_env import ApiSettings, PaymentSettings, ServerConfig
from playpass.infrastructure.database import DatabaseClient
from playpass.infrastructure.replay_guard_impl import InMemoryReplayGuard
from playpass.infrastructure.storage import RedisKeyValueStore
from tests.fixtures import FakeChainClient, FakePriceOracle, InMemoryKeyValueStore
from tests.fixtures.payment_data import SECRET, TREASURY, FixedClock


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def token_service(clock: FixedClock) -> PaymentTokenService:
    return PaymentTokenService(SECRET, clock=clock)


@pytest.fixture
def payment_settings() -> PaymentSettings:
    return PaymentSettings(treasury_address=TREASURY, signing_secret=SECRET)


@pytest.fixture
def server_config(payment_settings: PaymentSettings) -> ServerConfig:
    return ServerConfig(api=ApiSettings(), payments=payment_settings, errors=[])


@pytest.fixture
def chain_client() -> FakeChainClient:
    return FakeChainClient(block_number=100)


@pytest.fixture
def price_oracle() -> FakePriceOracle:
    return FakePriceOracle(rate=2000.0)


@pytest.fixture
def replay_guard() -> InMemoryReplayGuard:
    return InMemoryReplayGuard()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


class TestDatabaseSettings:
    """Test settings for Redis connection."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url


@pytest_asyncio.fixture
async def redis_db_client() -> AsyncGenerator[DatabaseClient, None]:
    """Create a Redis database client for testing.

    Uses database 15 by default, or TEST_REDIS_URL if set.
    """
    import warnings

    test_redis_url = os.getenv("TEST_REDIS_URL", "redis://localhost:6379/15")
    client = DatabaseClient(TestDatabaseSettings(database_url=test_redis_url))
    client.initialize_database()

    # Test connection
    try:
        async with client.get_connection() as conn:
            await conn.ping()
    except Exception as e:
        warnings.warn(
            f"Redis not available at {test_redis_url}: {e}. "
            "Tests requiring Redis will be skipped.",
            UserWarning,
        )
        await client.close()
        pytest.skip(f"Redis not available: {e}")

    yield client

    # Cleanup: flush test database
    try:
        async with client.get_connection() as conn:
            await conn.flushdb()
    except Exception:
        pass  # Ignore cleanup errors
    await client.close()


@pytest_asyncio.fixture
async def redis_store(redis_db_client: DatabaseClient) -> RedisKeyValueStore:
    """Create a Redis-backed key-value store for testing."""
    return RedisKeyValueStore(redis_db_client)
