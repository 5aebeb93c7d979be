"""End-to-end tests for the payments API with in-memory collaborators."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from playpass.api.app import create_app
from playpass.envs.server_env import ApiSettings, ServerConfig
from tests.fixtures.payment_data import REQUIRED_WEI, TREASURY, TX_HASH, WALLET


@pytest.fixture
def client(server_config, chain_client, price_oracle, replay_guard):
    app = create_app(
        server_config,
        chain_client=chain_client,
        price_oracle=price_oracle,
        replay_guard=replay_guard,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def misconfigured_client():
    config = ServerConfig(
        api=ApiSettings(), payments=None, errors=["TREASURY_ADDRESS env var is missing"]
    )
    with TestClient(create_app(config)) as test_client:
        yield test_client


def test_root_and_health(client) -> None:
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["message"] == "Welcome to PlayPass API"

    health = client.get("/health")
    assert health.json()["status"] == "healthy"


def test_intent_then_verify(client, chain_client, replay_guard) -> None:
    intent = client.post("/payments/create-intent", json={"walletAddress": WALLET.lower()})
    assert intent.status_code == 200
    body = intent.json()
    assert body["requiredAmountWei"] == str(REQUIRED_WEI)
    assert body["treasuryAddress"] == TREASURY
    assert body["token"].count(".") == 1

    chain_client.add_payment(
        TX_HASH, sender=WALLET, recipient=TREASURY, value=int(body["requiredAmountWei"])
    )
    request = {"txHash": TX_HASH, "token": body["token"], "walletAddress": WALLET}

    first = client.post("/payments/verify", json=request)
    assert first.status_code == 200
    assert first.json()["code"] == "VERIFIED"

    second = client.post("/payments/verify", json=request)
    assert second.status_code == 200
    assert second.json()["code"] == "ALREADY_VERIFIED"
    assert replay_guard.info()["tx_count"] == 1


def test_verify_unknown_transaction_is_retryable(client) -> None:
    token = client.post("/payments/create-intent", json={"walletAddress": WALLET}).json()[
        "token"
    ]

    response = client.post(
        "/payments/verify",
        json={"txHash": TX_HASH, "token": token, "walletAddress": WALLET},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "TX_NOT_FOUND"
    assert response.json()["retryable"] is True


def test_metrics_are_exposed(client) -> None:
    client.post("/payments/create-intent", json={"walletAddress": WALLET})

    response = client.get("/metrics/")

    assert response.status_code == 200
    assert "payment_requests_total" in response.text


def test_misconfigured_service_fails_closed(misconfigured_client) -> None:
    assert misconfigured_client.get("/health").json()["status"] == "misconfigured"

    probe = misconfigured_client.get("/payments/create-intent")
    assert probe.status_code == 200
    assert probe.json()["errorCount"] == 1

    intent = misconfigured_client.post(
        "/payments/create-intent", json={"walletAddress": WALLET}
    )
    assert intent.status_code == 503
    assert intent.json()["code"] == "CONFIG_ERROR"

    verify = misconfigured_client.post(
        "/payments/verify",
        json={"txHash": TX_HASH, "token": "a.b", "walletAddress": WALLET},
    )
    assert verify.status_code == 503
    assert verify.json()["retryable"] is False
