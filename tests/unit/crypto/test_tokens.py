"""Unit tests for payment token signing and verification."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import re

import pytest

from playpass.crypto.tokens import (
    PaymentTokenService,
    b64url_decode,
    b64url_encode,
    generate_nonce,
)
from playpass.domain.entities import TokenErrorCode
from tests.fixtures.payment_data import NOW_MS, SECRET, FixedClock, make_payload


class TestTokenRoundTrip:
    def test_verify_returns_original_payload(self, token_service) -> None:
        payload = make_payload()
        result = token_service.verify_token(token_service.create_token(payload))
        assert result.is_valid
        assert result.payload == payload
        assert result.code is None

    def test_wire_format_is_two_unpadded_base64url_segments(self, token_service) -> None:
        token = token_service.create_token(make_payload())
        segment, signature = token.split(".")
        assert "=" not in token
        assert re.fullmatch(r"[A-Za-z0-9_-]+", segment)
        assert re.fullmatch(r"[A-Za-z0-9_-]+", signature)

    def test_payload_json_uses_camel_case_in_field_order(self, token_service) -> None:
        token = token_service.create_token(make_payload())
        decoded = b64url_decode(token.split(".")[0]).decode()
        assert list(json.loads(decoded)) == [
            "walletAddress",
            "treasuryAddress",
            "requiredAmountWei",
            "chainId",
            "expiresAt",
            "nonce",
        ]
        assert ", " not in decoded and ": " not in decoded

    def test_signature_is_hmac_sha256_of_payload_segment(self, token_service) -> None:
        segment, signature = token_service.create_token(make_payload()).split(".")
        digest = hmac.new(SECRET.encode(), segment.encode(), hashlib.sha256).digest()
        assert signature == base64.urlsafe_b64encode(digest).rstrip(b"=").decode()

    def test_different_secret_rejects(self, token_service, clock) -> None:
        token = token_service.create_token(make_payload())
        other = PaymentTokenService("another-secret", clock=clock)
        assert other.verify_token(token).code is TokenErrorCode.INVALID_SIGNATURE


class TestTokenTampering:
    def test_every_single_character_change_is_rejected(self, token_service) -> None:
        token = token_service.create_token(make_payload())
        for i, char in enumerate(token):
            replacement = "A" if char != "A" else "B"
            tampered = token[:i] + replacement + token[i + 1 :]
            result = token_service.verify_token(tampered)
            assert not result.is_valid, f"tampered at {i} accepted"
            assert result.code in (
                TokenErrorCode.INVALID_SIGNATURE,
                TokenErrorCode.INVALID_FORMAT,
            )

    def test_swapped_payload_with_original_signature_rejected(self, token_service) -> None:
        token = token_service.create_token(make_payload())
        forged = token_service.create_token(make_payload(required_amount_wei="1"))
        spliced = forged.split(".")[0] + "." + token.split(".")[1]
        assert token_service.verify_token(spliced).code is TokenErrorCode.INVALID_SIGNATURE

    def test_valid_signature_over_garbage_is_verification_error(self, token_service) -> None:
        segment = b64url_encode(b"not json at all")
        token = f"{segment}.{token_service._sign(segment)}"
        result = token_service.verify_token(token)
        assert result.code is TokenErrorCode.VERIFICATION_ERROR

    def test_valid_signature_over_incomplete_payload_is_verification_error(
        self, token_service
    ) -> None:
        segment = b64url_encode(json.dumps({"walletAddress": "0x00"}).encode())
        token = f"{segment}.{token_service._sign(segment)}"
        assert token_service.verify_token(token).code is TokenErrorCode.VERIFICATION_ERROR


class TestTokenSegments:
    @pytest.mark.parametrize("token", ["", "nodots", "a.b.c", "a.b.c.d", "..."])
    def test_wrong_segment_count_is_invalid_format(self, token_service, token) -> None:
        result = token_service.verify_token(token)
        assert result.code is TokenErrorCode.INVALID_FORMAT
        assert result.error == "Invalid token format"


class TestTokenExpiry:
    def test_valid_at_exact_expiry(self, token_service, clock) -> None:
        payload = make_payload(expires_at=NOW_MS + 1000)
        token = token_service.create_token(payload)
        clock.now = NOW_MS + 1000
        assert token_service.verify_token(token).is_valid

    def test_expired_one_ms_after(self, token_service, clock) -> None:
        payload = make_payload(expires_at=NOW_MS + 1000)
        token = token_service.create_token(payload)
        clock.now = NOW_MS + 1001
        result = token_service.verify_token(token)
        assert result.code is TokenErrorCode.EXPIRED
        assert result.payload is None


class TestPaymentTokenService:
    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            PaymentTokenService("", clock=FixedClock())


def test_nonce_format() -> None:
    nonce = generate_nonce()
    assert re.fullmatch(r"\d{13}_[0-9a-f]{16}", nonce)
    assert generate_nonce() != nonce


def test_b64url_round_trip_without_padding() -> None:
    for data in (b"", b"a", b"ab", b"abc", b"\xff\xfe\xfd"):
        encoded = b64url_encode(data)
        assert "=" not in encoded
        assert b64url_decode(encoded) == data
