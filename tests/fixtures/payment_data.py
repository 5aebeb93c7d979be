"""Shared test data for payment tests."""

from __future__ import annotations

from playpass.domain.entities import PaymentTokenPayload

WALLET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
OTHER_WALLET = "0x2222222222222222222222222222222222222222"
TREASURY = "0x1111111111111111111111111111111111111111"
SECRET = "test-secret"
NOW_MS = 1_700_000_000_000
REQUIRED_WEI = 157_500_000_000
TX_HASH = "0x" + "ab" * 32


class FixedClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_payload(**overrides) -> PaymentTokenPayload:
    fields = {
        "wallet_address": WALLET,
        "treasury_address": TREASURY,
        "required_amount_wei": str(REQUIRED_WEI),
        "chain_id": 8453,
        "expires_at": NOW_MS + 600_000,
        "nonce": f"{NOW_MS}_0123456789abcdef",
    }
    fields.update(overrides)
    return PaymentTokenPayload(**fields)
