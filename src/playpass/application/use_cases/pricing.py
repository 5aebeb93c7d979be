"""Pure fiat-to-wei conversion.

Decimal arithmetic keeps the result exact for the configured constants, so
``gbp_to_wei(0.0003, 2000, 5)`` is exactly 157500000000.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

WEI_PER_ETH = 10**18


def _dec(value: float | int | str | Decimal) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def gbp_to_wei(
    gbp_amount: float | Decimal,
    eth_price_gbp: float | Decimal,
    safety_buffer_percent: float | Decimal,
) -> int:
    """Required payment in wei with the safety buffer applied, rounded up.

    Raises:
        ValueError: If the exchange rate is not positive.
    """
    rate = _dec(eth_price_gbp)
    if rate <= 0:
        raise ValueError(f"Exchange rate must be positive, got {eth_price_gbp}")
    buffered = _dec(gbp_amount) * (1 + _dec(safety_buffer_percent) / 100)
    eth_amount = buffered / rate
    return int((eth_amount * WEI_PER_ETH).to_integral_value(rounding=ROUND_CEILING))


def format_eth(wei: int, places: int = 8) -> str:
    """Render a wei amount as ETH with a fixed number of decimals."""
    quantum = Decimal(1).scaleb(-places)
    eth = (Decimal(wei) / WEI_PER_ETH).quantize(quantum, rounding=ROUND_HALF_UP)
    return format(eth, "f")
