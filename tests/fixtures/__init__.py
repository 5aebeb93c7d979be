"""Test fixtures for in-memory implementations."""

from .fake_chain import FakeChainClient, FakePriceOracle
from .fake_wallet import FakeGateway, FakeWallet
from .in_memory_storage import InMemoryKeyValueStore

__all__ = [
    "FakeChainClient",
    "FakeGateway",
    "FakePriceOracle",
    "FakeWallet",
    "InMemoryKeyValueStore",
]
