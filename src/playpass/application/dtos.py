"""Data Transfer Objects for the payments API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.entities import VerificationOutcome


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateIntentDTO(_CamelModel):
    """DTO for requesting a payment intent."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"walletAddress": "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"}
        },
    )

    wallet_address: Optional[str] = Field(None, alias="walletAddress")

    @field_validator("wallet_address", mode="before")
    @classmethod
    def non_string_as_missing(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class IntentResponseDTO(_CamelModel):
    """Signed token plus display quote returned to the caller."""

    token: str
    required_amount_wei: str = Field(..., alias="requiredAmountWei")
    treasury_address: str = Field(..., alias="treasuryAddress")
    eth_amount: str = Field(..., alias="ethAmount")
    gbp_amount: float = Field(..., alias="gbpAmount")
    is_fallback_price: bool = Field(..., alias="isFallbackPrice")
    expires_at: int = Field(..., alias="expiresAt")


class HealthDTO(_CamelModel):
    status: str
    configured: bool
    error_count: int = Field(..., alias="errorCount")
    message: str


class VerifyPaymentDTO(_CamelModel):
    """DTO for verifying an on-chain payment against its token."""

    tx_hash: Optional[str] = Field(None, alias="txHash")
    token: Optional[str] = None
    wallet_address: Optional[str] = Field(None, alias="walletAddress")

    @field_validator("tx_hash", "token", "wallet_address", mode="before")
    @classmethod
    def non_string_as_missing(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class VerifyResponseDTO(_CamelModel):
    """Wire form of a verification outcome, as seen by clients."""

    paid: bool
    code: Optional[str] = None
    retryable: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
    confirmations: Optional[int] = None
    required: Optional[int] = None

    @classmethod
    def from_outcome(cls, outcome: VerificationOutcome) -> "VerifyResponseDTO":
        return cls(
            paid=outcome.paid,
            code=outcome.code.value,
            retryable=outcome.retryable,
            error=outcome.error,
            message=outcome.message,
            confirmations=outcome.confirmations,
            required=outcome.required,
        )

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if self.paid:
            data.pop("retryable", None)
        return data


class ErrorResponseDTO(_CamelModel):
    error: str
    code: str
    hint: Optional[str] = None
