"""Stateless payment tokens.

A token is ``base64url(JSON(payload)) + "." + base64url(HMAC-SHA256(secret, segment))``.
It carries everything the verifier needs, so the server keeps no intent state.
"""

from __future__ import annotations

import base64
import json
import secrets
import time
from typing import Callable, NewType, Optional

from cryptography.hazmat.primitives import constant_time, hashes, hmac
from pydantic import BaseModel, ValidationError

from ..domain.entities import PaymentTokenPayload, TokenErrorCode

PayloadSegment = NewType("PayloadSegment", str)
SignatureSegment = NewType("SignatureSegment", str)


class TokenVerificationResult(BaseModel):
    """Either a verified payload or an error with its code."""

    payload: Optional[PaymentTokenPayload] = None
    error: Optional[str] = None
    code: Optional[TokenErrorCode] = None

    @property
    def is_valid(self) -> bool:
        return self.payload is not None


def now_ms() -> int:
    return int(time.time() * 1000)


def b64url_encode(data: bytes) -> str:
    """Unpadded base64url, as produced by Node's ``'base64url'`` encoding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def payload_to_bytes(payload: PaymentTokenPayload) -> bytes:
    """Compact JSON in field order, byte-compatible with ``JSON.stringify``."""
    return json.dumps(
        payload.model_dump(by_alias=True), separators=(",", ":")
    ).encode("utf-8")


def generate_nonce() -> str:
    """Timestamp plus 8 random bytes; traceability only, never checked for reuse."""
    return f"{now_ms()}_{secrets.token_hex(8)}"


class PaymentTokenService:
    """Signs and verifies payment tokens with a fixed process secret."""

    def __init__(self, secret: str, clock: Callable[[], int] = now_ms):
        if not secret:
            raise ValueError("Token signing secret cannot be empty")
        self._secret = secret.encode("utf-8")
        self._clock = clock

    def _sign(self, segment: str) -> SignatureSegment:
        mac = hmac.HMAC(self._secret, hashes.SHA256())
        mac.update(segment.encode("utf-8"))
        return SignatureSegment(b64url_encode(mac.finalize()))

    def create_token(self, payload: PaymentTokenPayload) -> str:
        segment = PayloadSegment(b64url_encode(payload_to_bytes(payload)))
        return f"{segment}.{self._sign(segment)}"

    def verify_token(self, token: str) -> TokenVerificationResult:
        parts = token.split(".")
        if len(parts) != 2:
            return TokenVerificationResult(
                error="Invalid token format", code=TokenErrorCode.INVALID_FORMAT
            )

        segment, provided_signature = parts
        # Compare the encoded strings so non-canonical base64 cannot alias a signature.
        expected_signature = self._sign(segment)
        if not constant_time.bytes_eq(
            expected_signature.encode("utf-8"), provided_signature.encode("utf-8")
        ):
            return TokenVerificationResult(
                error="Invalid token signature",
                code=TokenErrorCode.INVALID_SIGNATURE,
            )

        try:
            payload = PaymentTokenPayload.model_validate_json(b64url_decode(segment))
        except (ValueError, ValidationError):
            return TokenVerificationResult(
                error="Token verification failed",
                code=TokenErrorCode.VERIFICATION_ERROR,
            )

        if self._clock() > payload.expires_at:
            return TokenVerificationResult(
                error="Token expired", code=TokenErrorCode.EXPIRED
            )

        return TokenVerificationResult(payload=payload)
