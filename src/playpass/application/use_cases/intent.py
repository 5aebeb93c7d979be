"""Payment intent use case."""

from __future__ import annotations

import logging
from typing import Callable

from ...crypto.addresses import checksum_or_none
from ...crypto.tokens import PaymentTokenService, generate_nonce, now_ms
from ...domain.entities import PaymentTokenPayload
from ...domain.errors import InvalidWalletAddressError
from ...domain.shared import PriceOracleProtocol
from ...envs.server_env import PaymentSettings
from ..dtos import IntentResponseDTO
from .pricing import format_eth, gbp_to_wei

logger = logging.getLogger(__name__)


class IntentService:
    """Builds signed payment intents. Persists nothing server-side."""

    def __init__(
        self,
        settings: PaymentSettings,
        token_service: PaymentTokenService,
        price_oracle: PriceOracleProtocol,
        *,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings
        self.token_service = token_service
        self.price_oracle = price_oracle
        self._clock = clock

    async def create_intent(self, wallet_address: str | None) -> IntentResponseDTO:
        """Quote the current price and sign a token for ``wallet_address``.

        Raises:
            InvalidWalletAddressError: If the wallet address is missing or not
                checksummable.
        """
        checksummed_wallet = checksum_or_none(wallet_address)
        if checksummed_wallet is None:
            raise InvalidWalletAddressError("Invalid wallet address")

        quote = await self.price_oracle.get_eth_gbp_price()
        required_amount_wei = gbp_to_wei(
            self.settings.payment_amount_gbp,
            quote.eth_price_gbp,
            self.settings.safety_buffer_percent,
        )
        expires_at = self._clock() + self.settings.intent_ttl_ms
        nonce = generate_nonce()

        token = self.token_service.create_token(
            PaymentTokenPayload(
                wallet_address=checksummed_wallet,
                treasury_address=self.settings.treasury_address,
                required_amount_wei=str(required_amount_wei),
                chain_id=self.settings.chain_id,
                expires_at=expires_at,
                nonce=nonce,
            )
        )
        eth_amount = format_eth(required_amount_wei)

        logger.info(
            "Payment intent created: wallet=%s, amount=%s ETH, nonce=%s, fallback=%s",
            checksummed_wallet,
            eth_amount,
            nonce,
            quote.is_fallback,
        )

        return IntentResponseDTO(
            token=token,
            required_amount_wei=str(required_amount_wei),
            treasury_address=self.settings.treasury_address,
            eth_amount=eth_amount,
            gbp_amount=self.settings.payment_amount_gbp,
            is_fallback_price=quote.is_fallback,
            expires_at=expires_at,
        )
