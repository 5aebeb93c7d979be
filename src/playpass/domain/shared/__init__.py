"""Shared domain utilities.

This package is domain-accessible and should not depend on infrastructure code.
"""

from .chain_client_protocol import ChainClientProtocol, PriceOracleProtocol
from .payment_gateway_protocol import PaymentGatewayProtocol, WalletProtocol

__all__ = [
    "ChainClientProtocol",
    "PaymentGatewayProtocol",
    "PriceOracleProtocol",
    "WalletProtocol",
]
