"""Domain-specific exceptions."""

from __future__ import annotations

from typing import Optional


class ConfigurationError(Exception):
    """Raised when a payment operation is attempted with an invalid server config."""

    def __init__(self, errors: list[str]):
        super().__init__(f"Server configuration error: {'; '.join(errors)}")
        self.errors = list(errors)


class InvalidWalletAddressError(ValueError):
    """Raised when a wallet address is missing, malformed or badly checksummed."""


class ChainQueryError(Exception):
    """Raised when the chain RPC cannot answer a transaction/receipt/block query."""


class WalletProviderError(Exception):
    """Error surfaced by a wallet's send-transaction capability.

    ``code`` carries the provider's numeric error code (EIP-1193 / JSON-RPC)
    when one is known.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        short_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.short_message = short_message


class PaymentApiError(Exception):
    """Raised by the client when the payments API cannot be used.

    ``code`` is the API's structured error code when the server answered;
    it is None for transport failures (no response at all).
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.status_code = status_code

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None
