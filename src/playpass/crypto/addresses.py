from __future__ import annotations

import re
from typing import Any, Optional

from web3 import Web3

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
TX_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


def is_valid_address(value: Any) -> bool:
    """True for 0x-prefixed 20-byte hex addresses.

    Single-case input is accepted as is; mixed-case input must carry a valid
    EIP-55 checksum.
    """
    if not isinstance(value, str) or ADDRESS_PATTERN.match(value) is None:
        return False
    body = value[2:]
    if body == body.lower() or body == body.upper():
        return True
    return Web3.is_checksum_address(value)


def to_checksum(value: str) -> str:
    return Web3.to_checksum_address(value)


def checksum_or_none(value: Any) -> Optional[str]:
    if not is_valid_address(value):
        return None
    return to_checksum(value)


def is_valid_tx_hash(value: Any) -> bool:
    return isinstance(value, str) and TX_HASH_PATTERN.match(value) is not None
