"""On-chain payment verification use case."""

from __future__ import annotations

import asyncio
import logging
import secrets

from ...crypto.tokens import PaymentTokenService
from ...domain.entities import VerificationCode, VerificationOutcome
from ...domain.errors import ChainQueryError
from ...domain.replay_guard import ReplayGuard
from ...domain.shared import ChainClientProtocol
from ..dtos import VerifyPaymentDTO
from .verification_validators import (
    count_confirmations,
    map_token_error,
    validate_confirmations,
    validate_request_shape,
    validate_token_binding,
    validate_transaction,
)

logger = logging.getLogger(__name__)


class _RequestLog(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[verify:{self.extra['request_id']}] {msg}", kwargs


class VerificationService:
    """Reconciles a claimed transaction against its payment token.

    Check order matters: the replay lookup runs before token validation so a
    client that missed a success response can resubmit the same hash with a
    stale token and still be told it paid.
    """

    def __init__(
        self,
        token_service: PaymentTokenService,
        replay_guard: ReplayGuard,
        chain_client: ChainClientProtocol,
        *,
        chain_id: int,
        min_confirmations: int,
    ):
        self.token_service = token_service
        self.replay_guard = replay_guard
        self.chain_client = chain_client
        self.chain_id = chain_id
        self.min_confirmations = min_confirmations

    async def verify_payment(self, dto: VerifyPaymentDTO) -> VerificationOutcome:
        log = _RequestLog(logger, {"request_id": secrets.token_hex(3)})
        log.info(
            "Verifying: txHash=%s..., wallet=%s...",
            (dto.tx_hash or "")[:10],
            (dto.wallet_address or "")[:10],
        )

        # 1) Input shape
        rejected = validate_request_shape(dto.tx_hash, dto.token, dto.wallet_address)
        if rejected:
            log.warning("Rejected request: %s", rejected.code.value)
            return rejected
        assert dto.tx_hash and dto.token and dto.wallet_address
        tx_hash = dto.tx_hash

        # 2) Anti-replay, before the token is looked at
        if await self.replay_guard.is_used(tx_hash):
            log.info("TxHash already used - payment was already verified")
            return VerificationOutcome.success(
                VerificationCode.ALREADY_VERIFIED, "Payment was already verified"
            )

        # 3) Token
        token_result = self.token_service.verify_token(dto.token)
        if token_result.payload is None:
            log.warning(
                "Token verification failed: %s - %s",
                token_result.code.value if token_result.code else None,
                token_result.error,
            )
            return map_token_error(token_result.code)
        payload = token_result.payload

        # 4-5) Token binds this wallet on this chain
        rejected = validate_token_binding(payload, dto.wallet_address, self.chain_id)
        if rejected:
            log.warning("Token binding failed: %s", rejected.code.value)
            return rejected

        # 6) Transaction + receipt
        try:
            transaction, receipt = await asyncio.gather(
                self.chain_client.get_transaction(tx_hash),
                self.chain_client.get_transaction_receipt(tx_hash),
            )
        except ChainQueryError as e:
            log.warning("Failed to fetch tx from RPC: %s", e)
            return VerificationOutcome.failure(
                VerificationCode.TX_NOT_FOUND,
                "Transaction not found yet. It may still be confirming.",
                retryable=True,
            )

        # 7-10) Status, recipient, sender, amount
        rejected = validate_transaction(payload, transaction, receipt)
        if rejected:
            log.warning(
                "Transaction check failed: %s (to=%s, from=%s, value=%s, required=%s)",
                rejected.code.value,
                transaction.recipient,
                transaction.sender,
                transaction.value,
                payload.required_amount_wei,
            )
            return rejected

        # 11) Finality
        current_block = await self.chain_client.get_block_number()
        confirmations = count_confirmations(current_block, receipt.block_number)
        pending = validate_confirmations(confirmations, self.min_confirmations)
        if pending:
            log.info(
                "Waiting for confirmations: %d/%d", confirmations, self.min_confirmations
            )
            return pending

        # 12) Grant exactly once
        if not await self.replay_guard.mark_used_if_absent(tx_hash):
            log.info("TxHash recorded by a concurrent request")
            return VerificationOutcome.success(
                VerificationCode.ALREADY_VERIFIED, "Payment was already verified"
            )

        log.info(
            "Payment verified: wallet=%s, confirmations=%d",
            payload.wallet_address,
            confirmations,
        )
        return VerificationOutcome.success(
            VerificationCode.VERIFIED,
            "Payment verified successfully",
            confirmations=confirmations,
        )
