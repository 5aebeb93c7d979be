"""Unit tests for payment API routes."""

import unittest
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from playpass.api.dependencies import (
    get_intent_service,
    get_server_config,
    get_verification_service,
)
from playpass.api.routers.payments import router
from playpass.application.dtos import IntentResponseDTO
from playpass.domain.entities import VerificationCode, VerificationOutcome
from playpass.domain.errors import InvalidWalletAddressError
from playpass.envs.server_env import ApiSettings, PaymentSettings, ServerConfig

WALLET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
TREASURY = "0x1111111111111111111111111111111111111111"
TX_HASH = "0x" + "ab" * 32


class TestPaymentsRouter(unittest.TestCase):
    """Test cases for payments router."""

    def setUp(self):
        """Set up test fixtures."""
        self.app = FastAPI()
        self.app.include_router(router)

        self.config = ServerConfig(
            api=ApiSettings(),
            payments=PaymentSettings(treasury_address=TREASURY, signing_secret="s"),
        )
        self.intent = IntentResponseDTO(
            token="payload.signature",
            required_amount_wei="157500000000",
            treasury_address=TREASURY,
            eth_amount="0.00000016",
            gbp_amount=0.0003,
            is_fallback_price=False,
            expires_at=1_700_000_600_000,
        )

        # Create mock services
        self.intent_service = AsyncMock()
        self.verification_service = AsyncMock()

        # Override dependencies
        self.app.dependency_overrides[get_server_config] = lambda: self.config
        self.app.dependency_overrides[get_intent_service] = lambda: self.intent_service
        self.app.dependency_overrides[get_verification_service] = (
            lambda: self.verification_service
        )

        self.client = TestClient(self.app)

    def tearDown(self):
        """Clean up after tests."""
        self.app.dependency_overrides.clear()

    def _misconfigure(self):
        self.config = ServerConfig(
            api=ApiSettings(), payments=None, errors=["TREASURY_ADDRESS env var is missing"]
        )
        self.app.dependency_overrides[get_intent_service] = lambda: None
        self.app.dependency_overrides[get_verification_service] = lambda: None

    def test_create_intent_success(self):
        """Test successful intent creation."""
        # Arrange
        self.intent_service.create_intent.return_value = self.intent

        # Act
        response = self.client.post(
            "/payments/create-intent", json={"walletAddress": WALLET}
        )

        # Assert
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["token"], "payload.signature")
        self.assertEqual(body["requiredAmountWei"], "157500000000")
        self.assertEqual(body["treasuryAddress"], TREASURY)
        self.assertEqual(body["ethAmount"], "0.00000016")
        self.assertFalse(body["isFallbackPrice"])
        self.assertEqual(body["expiresAt"], 1_700_000_600_000)
        self.intent_service.create_intent.assert_called_once_with(WALLET)

    def test_create_intent_invalid_address(self):
        """Test invalid wallet address is a 400."""
        self.intent_service.create_intent.side_effect = InvalidWalletAddressError(
            "Invalid wallet address"
        )

        response = self.client.post(
            "/payments/create-intent", json={"walletAddress": "nope"}
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"error": "Invalid wallet address", "code": "INVALID_ADDRESS"}
        )

    def test_create_intent_non_object_body(self):
        """Test a non-object body reads as a missing address."""
        self.intent_service.create_intent.side_effect = InvalidWalletAddressError(
            "Invalid wallet address"
        )

        response = self.client.post("/payments/create-intent", content=b"[1, 2]")

        self.assertEqual(response.status_code, 400)
        self.intent_service.create_intent.assert_called_once_with(None)

    def test_create_intent_invalid_json(self):
        """Test malformed JSON is treated as an empty body, not a 422."""
        self.intent_service.create_intent.side_effect = InvalidWalletAddressError(
            "Invalid wallet address"
        )

        response = self.client.post(
            "/payments/create-intent",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "INVALID_ADDRESS")

    def test_create_intent_misconfigured(self):
        """Test misconfigured service fails closed with a hint."""
        self._misconfigure()

        response = self.client.post(
            "/payments/create-intent", json={"walletAddress": WALLET}
        )

        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertEqual(body["code"], "CONFIG_ERROR")
        self.assertIn("hint", body)
        self.intent_service.create_intent.assert_not_called()

    def test_create_intent_internal_error(self):
        """Test unexpected errors are a generic 500."""
        self.intent_service.create_intent.side_effect = RuntimeError("boom")

        response = self.client.post(
            "/payments/create-intent", json={"walletAddress": WALLET}
        )

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["code"], "INTERNAL_ERROR")
        self.assertNotIn("boom", body["error"])

    def test_create_intent_other_value_error_is_internal(self):
        """Test a non-address ValueError is not reported as INVALID_ADDRESS."""
        self.intent_service.create_intent.side_effect = ValueError(
            "eth_price_gbp: Input should be greater than 0"
        )

        response = self.client.post(
            "/payments/create-intent", json={"walletAddress": WALLET}
        )

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["code"], "INTERNAL_ERROR")

    def test_intent_health_ready(self):
        """Test health probe on a configured service."""
        response = self.client.get("/payments/create-intent")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "status": "ready",
                "configured": True,
                "errorCount": 0,
                "message": "Payment service is configured and ready",
            },
        )

    def test_intent_health_misconfigured(self):
        """Test health probe still answers when misconfigured."""
        self._misconfigure()

        response = self.client.get("/payments/create-intent")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "misconfigured")
        self.assertFalse(body["configured"])
        self.assertEqual(body["errorCount"], 1)

    def test_verify_paid(self):
        """Test a verified payment is a 200 without the retryable flag."""
        self.verification_service.verify_payment.return_value = (
            VerificationOutcome.success(
                VerificationCode.VERIFIED,
                "Payment verified successfully",
                confirmations=1,
            )
        )

        response = self.client.post(
            "/payments/verify",
            json={"txHash": TX_HASH, "token": "t.s", "walletAddress": WALLET},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "paid": True,
                "code": "VERIFIED",
                "message": "Payment verified successfully",
                "confirmations": 1,
            },
        )
        dto = self.verification_service.verify_payment.call_args.args[0]
        self.assertEqual(dto.tx_hash, TX_HASH)
        self.assertEqual(dto.token, "t.s")
        self.assertEqual(dto.wallet_address, WALLET)

    def test_verify_pending_is_retryable_400(self):
        """Test pending confirmations are a retryable 400."""
        self.verification_service.verify_payment.return_value = (
            VerificationOutcome.failure(
                VerificationCode.PENDING_CONFIRMATIONS,
                "Waiting for blockchain confirmation...",
                retryable=True,
                confirmations=0,
                required=1,
            )
        )

        response = self.client.post(
            "/payments/verify",
            json={"txHash": TX_HASH, "token": "t.s", "walletAddress": WALLET},
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["paid"])
        self.assertEqual(body["code"], "PENDING_CONFIRMATIONS")
        self.assertTrue(body["retryable"])
        self.assertEqual(body["confirmations"], 0)
        self.assertEqual(body["required"], 1)

    def test_verify_non_string_fields_become_missing(self):
        """Test non-string fields are passed on as missing."""
        self.verification_service.verify_payment.return_value = (
            VerificationOutcome.failure(
                VerificationCode.INVALID_TX_HASH, "Invalid transaction hash"
            )
        )

        response = self.client.post(
            "/payments/verify", json={"txHash": 42, "token": ["x"], "walletAddress": {}}
        )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["retryable"])
        dto = self.verification_service.verify_payment.call_args.args[0]
        self.assertIsNone(dto.tx_hash)
        self.assertIsNone(dto.token)
        self.assertIsNone(dto.wallet_address)

    def test_verify_misconfigured(self):
        """Test misconfigured verify is a non-retryable 503."""
        self._misconfigure()

        response = self.client.post(
            "/payments/verify",
            json={"txHash": TX_HASH, "token": "t.s", "walletAddress": WALLET},
        )

        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertFalse(body["paid"])
        self.assertEqual(body["code"], "CONFIG_ERROR")
        self.assertFalse(body["retryable"])

    def test_verify_internal_error(self):
        """Test unexpected verify errors are a retryable 500."""
        self.verification_service.verify_payment.side_effect = RuntimeError("rpc down")

        response = self.client.post(
            "/payments/verify",
            json={"txHash": TX_HASH, "token": "t.s", "walletAddress": WALLET},
        )

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertFalse(body["paid"])
        self.assertEqual(body["code"], "INTERNAL_ERROR")
        self.assertTrue(body["retryable"])


if __name__ == "__main__":
    unittest.main()
