"""ETH/GBP price feed backed by CoinGecko's simple-price endpoint."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

import httpx

from ...domain.entities import PriceQuote
from ..http.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Raised internally when the feed answer is unusable."""


class CoinGeckoPriceOracle:
    """Price oracle that always returns a usable rate.

    Live quotes are cached for ``cache_ttl`` seconds; any failure returns the
    static fallback rate marked ``is_fallback=True``.
    """

    def __init__(
        self,
        http: AsyncHttpClient,
        price_url: str,
        fallback_rate: float,
        *,
        cache_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = http
        self._price_url = price_url
        self._fallback_rate = fallback_rate
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._cached: Optional[tuple[float, PriceQuote]] = None

    async def _fetch(self) -> float:
        try:
            resp = await self._http.get(self._price_url)
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise PriceFeedError(f"Price API returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise PriceFeedError(f"Price API request failed: {e}") from e

        ethereum = data.get("ethereum") if isinstance(data, dict) else None
        price = ethereum.get("gbp") if isinstance(ethereum, dict) else None
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise PriceFeedError("Invalid price data")
        try:
            rate = float(price)
        except OverflowError as e:
            raise PriceFeedError("Invalid price data") from e
        # JSON Infinity and NaN literals parse to non-finite floats.
        if not math.isfinite(rate) or rate <= 0:
            raise PriceFeedError("Invalid price data")
        return rate

    async def get_eth_gbp_price(self) -> PriceQuote:
        if self._cached is not None:
            fetched_at, quote = self._cached
            if self._clock() - fetched_at < self._cache_ttl:
                return quote

        try:
            rate = await self._fetch()
        except PriceFeedError as e:
            logger.error("Price feed error, using fallback: %s", e)
            return PriceQuote(eth_price_gbp=self._fallback_rate, is_fallback=True)

        quote = PriceQuote(eth_price_gbp=rate, is_fallback=False)
        self._cached = (self._clock(), quote)
        return quote
