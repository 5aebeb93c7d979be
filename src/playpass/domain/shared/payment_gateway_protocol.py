"""Protocol interfaces for the collaborators of the client orchestrator."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    # Avoid circular imports by only importing types during type checking
    from ...application.dtos import IntentResponseDTO, VerifyResponseDTO


class PaymentGatewayProtocol(Protocol):
    """The payments API as seen by a client.

    ``create_intent`` raises ``PaymentApiError`` on any non-success answer.
    ``verify`` returns the structured body for every answered request and
    raises ``PaymentApiError`` only when no usable answer arrived.
    """

    async def create_intent(self, wallet_address: str) -> IntentResponseDTO:
        ...

    async def verify(
        self, tx_hash: str, token: str, wallet_address: str
    ) -> VerifyResponseDTO:
        ...


class WalletProtocol(Protocol):
    """Send-transaction capability of a connected wallet."""

    @property
    def address(self) -> str:
        ...

    async def send_transaction(self, to: str, value_wei: int) -> str:
        """Prompt for a signature and broadcast; returns the tx hash."""
        ...

    async def wait_for_confirmation(self, tx_hash: str) -> None:
        """Return once the transaction is mined; raise if it never is."""
        ...
