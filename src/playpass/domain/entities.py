"""Payment domain entities: token payload, chain records and verification outcome."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentTokenPayload(BaseModel):
    """Everything needed to verify a payment later, signed into the token.

    Field order is the wire order of the JSON payload.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    wallet_address: str = Field(..., alias="walletAddress")
    treasury_address: str = Field(..., alias="treasuryAddress")
    required_amount_wei: str = Field(..., alias="requiredAmountWei")
    chain_id: int = Field(..., alias="chainId")
    expires_at: int = Field(..., alias="expiresAt")
    nonce: str

    @property
    def required_amount(self) -> int:
        return int(self.required_amount_wei)


class TokenErrorCode(str, Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    VERIFICATION_ERROR = "VERIFICATION_ERROR"
    EXPIRED = "EXPIRED"


class VerificationCode(str, Enum):
    """Result codes returned by the verify endpoint."""

    VERIFIED = "VERIFIED"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    INVALID_TX_HASH = "INVALID_TX_HASH"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    ADDRESS_MISMATCH = "ADDRESS_MISMATCH"
    WRONG_CHAIN = "WRONG_CHAIN"
    TX_NOT_FOUND = "TX_NOT_FOUND"
    TX_FAILED = "TX_FAILED"
    WRONG_RECIPIENT = "WRONG_RECIPIENT"
    WRONG_SENDER = "WRONG_SENDER"
    INSUFFICIENT_AMOUNT = "INSUFFICIENT_AMOUNT"
    PENDING_CONFIRMATIONS = "PENDING_CONFIRMATIONS"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VerificationOutcome(BaseModel):
    """Pass/fail decision for a claimed payment."""

    model_config = ConfigDict(frozen=True)

    paid: bool
    code: VerificationCode
    retryable: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
    confirmations: Optional[int] = None
    required: Optional[int] = None

    @classmethod
    def success(
        cls,
        code: VerificationCode,
        message: str,
        confirmations: Optional[int] = None,
    ) -> "VerificationOutcome":
        return cls(paid=True, code=code, message=message, confirmations=confirmations)

    @classmethod
    def failure(
        cls,
        code: VerificationCode,
        error: str,
        *,
        retryable: bool = False,
        confirmations: Optional[int] = None,
        required: Optional[int] = None,
    ) -> "VerificationOutcome":
        return cls(
            paid=False,
            code=code,
            error=error,
            retryable=retryable,
            confirmations=confirmations,
            required=required,
        )


class ChainTransaction(BaseModel):
    """The fields of an on-chain transaction the verifier cares about."""

    tx_hash: str
    sender: str
    recipient: Optional[str]
    value: int


class ChainReceipt(BaseModel):
    """Mined receipt of a transaction."""

    tx_hash: str
    succeeded: bool
    block_number: int


class PriceQuote(BaseModel):
    """ETH price in GBP; ``is_fallback`` marks the static conservative rate."""

    eth_price_gbp: float = Field(..., gt=0)
    is_fallback: bool = False
