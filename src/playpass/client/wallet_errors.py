"""Classification of wallet send failures.

Wallet providers report a cancelled signature prompt in several shapes: an
EIP-1193 error code on the error or on one of its causes, a short message,
or only free text. Everything is reduced to one ``WalletErrorKind``.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Iterator, Optional

import httpx

from ..domain.errors import WalletProviderError


class WalletErrorKind(str, Enum):
    REJECTED = "rejected"
    NETWORK_ERROR = "network_error"
    CHAIN_ERROR = "chain_error"
    UNKNOWN = "unknown"


USER_REJECTED_CODE = 4001

# EIP-1193 provider codes plus the string code some libraries use.
PROVIDER_ERROR_CODES: dict[Any, WalletErrorKind] = {
    USER_REJECTED_CODE: WalletErrorKind.REJECTED,
    "ACTION_REJECTED": WalletErrorKind.REJECTED,
    4900: WalletErrorKind.NETWORK_ERROR,  # provider disconnected
    4901: WalletErrorKind.CHAIN_ERROR,  # chain disconnected
    4902: WalletErrorKind.CHAIN_ERROR,  # unrecognized chain
}

REJECTION_PHRASES = ("user rejected", "user denied", "rejected the request")
SHORT_MESSAGE_REJECTION_WORDS = ("rejected", "denied")

NETWORK_EXCEPTIONS = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)

# Bound on the cause chain walk.
_MAX_CAUSE_DEPTH = 8


def _cause_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen and len(seen) < _MAX_CAUSE_DEPTH:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _error_code(error: BaseException) -> Any:
    code = getattr(error, "code", None)
    if isinstance(code, (int, str)):
        return code
    # JSON-RPC style errors (web3) keep the provider response around.
    response = getattr(error, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        code = response["error"].get("code")
        if isinstance(code, (int, str)):
            return code
    return None


def classify_wallet_error(error: BaseException) -> WalletErrorKind:
    """Reduce a wallet send failure to a ``WalletErrorKind``.

    Codes win over text; a rejection anywhere in the cause chain wins over
    any other kind.
    """
    kinds: list[WalletErrorKind] = []

    for err in _cause_chain(error):
        kind = PROVIDER_ERROR_CODES.get(_error_code(err))
        if kind is not None:
            kinds.append(kind)

        short_message = getattr(err, "short_message", None)
        if isinstance(err, WalletProviderError) and short_message:
            lowered = short_message.lower()
            if any(word in lowered for word in SHORT_MESSAGE_REJECTION_WORDS):
                kinds.append(WalletErrorKind.REJECTED)

        message = str(err).lower()
        if any(phrase in message for phrase in REJECTION_PHRASES):
            kinds.append(WalletErrorKind.REJECTED)

        if isinstance(err, NETWORK_EXCEPTIONS):
            kinds.append(WalletErrorKind.NETWORK_ERROR)

    if WalletErrorKind.REJECTED in kinds:
        return WalletErrorKind.REJECTED
    return kinds[0] if kinds else WalletErrorKind.UNKNOWN


def is_user_rejection(error: BaseException) -> bool:
    return classify_wallet_error(error) is WalletErrorKind.REJECTED
