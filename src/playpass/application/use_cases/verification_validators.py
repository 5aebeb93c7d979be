"""Pure validation functions for on-chain payment verification.

Each check returns ``None`` when it passes, or the failing
``VerificationOutcome`` otherwise. They can be tested in isolation without
chain access or a replay store.
"""

from __future__ import annotations

from typing import Optional

from ...crypto.addresses import is_valid_address, is_valid_tx_hash, to_checksum
from ...domain.entities import (
    ChainReceipt,
    ChainTransaction,
    PaymentTokenPayload,
    TokenErrorCode,
    VerificationCode,
    VerificationOutcome,
)


def validate_request_shape(
    tx_hash: Optional[str],
    token: Optional[str],
    wallet_address: Optional[str],
) -> Optional[VerificationOutcome]:
    if not is_valid_tx_hash(tx_hash):
        return VerificationOutcome.failure(
            VerificationCode.INVALID_TX_HASH, "Invalid transaction hash"
        )
    if not token:
        return VerificationOutcome.failure(
            VerificationCode.MISSING_TOKEN,
            "Missing payment token. Please start a new payment.",
        )
    if not is_valid_address(wallet_address):
        return VerificationOutcome.failure(
            VerificationCode.INVALID_ADDRESS, "Invalid wallet address"
        )
    return None


def map_token_error(code: Optional[TokenErrorCode]) -> VerificationOutcome:
    """Expired tokens and every other token failure need a fresh intent."""
    if code is TokenErrorCode.EXPIRED:
        return VerificationOutcome.failure(
            VerificationCode.TOKEN_EXPIRED,
            "Payment session expired. Please start a new payment.",
        )
    return VerificationOutcome.failure(
        VerificationCode.INVALID_TOKEN,
        "Invalid payment token. Please start a new payment.",
    )


def validate_token_binding(
    payload: PaymentTokenPayload,
    wallet_address: str,
    expected_chain_id: int,
) -> Optional[VerificationOutcome]:
    if to_checksum(wallet_address) != payload.wallet_address:
        return VerificationOutcome.failure(
            VerificationCode.ADDRESS_MISMATCH, "Wallet address mismatch"
        )
    if payload.chain_id != expected_chain_id:
        return VerificationOutcome.failure(
            VerificationCode.WRONG_CHAIN, "Invalid chain in token"
        )
    return None


def validate_transaction(
    payload: PaymentTokenPayload,
    transaction: ChainTransaction,
    receipt: ChainReceipt,
) -> Optional[VerificationOutcome]:
    """Facts about a mined transaction; none of these can change by waiting."""
    if not receipt.succeeded:
        return VerificationOutcome.failure(
            VerificationCode.TX_FAILED, "Transaction failed on-chain"
        )
    if (
        not transaction.recipient
        or not is_valid_address(transaction.recipient)
        or to_checksum(transaction.recipient) != payload.treasury_address
    ):
        return VerificationOutcome.failure(
            VerificationCode.WRONG_RECIPIENT, "Payment sent to wrong address"
        )
    if (
        not is_valid_address(transaction.sender)
        or to_checksum(transaction.sender) != payload.wallet_address
    ):
        return VerificationOutcome.failure(
            VerificationCode.WRONG_SENDER, "Transaction from wrong wallet"
        )
    if transaction.value < payload.required_amount:
        return VerificationOutcome.failure(
            VerificationCode.INSUFFICIENT_AMOUNT, "Insufficient payment amount"
        )
    return None


def count_confirmations(current_block: int, receipt_block: int) -> int:
    return current_block - receipt_block + 1


def validate_confirmations(
    confirmations: int, min_confirmations: int
) -> Optional[VerificationOutcome]:
    if confirmations < min_confirmations:
        return VerificationOutcome.failure(
            VerificationCode.PENDING_CONFIRMATIONS,
            "Waiting for blockchain confirmation...",
            retryable=True,
            confirmations=confirmations,
            required=min_confirmations,
        )
    return None
