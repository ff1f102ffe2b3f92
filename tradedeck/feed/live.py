"""Live price feed backed by Binance klines.

Failures never propagate: a failed poll is logged and produces no tick,
so the session keeps its last known price until the provider recovers.
"""

import logging
from typing import Optional

import httpx

from tradedeck.market.binance_client import BinanceClient
from tradedeck.market.models import PriceTick
from tradedeck.sim.errors import MarketDataError

logger = logging.getLogger("tradedeck.feed")


class LiveFeed:
    """Polls the latest kline of *interval* for *symbol*.

    Args:
        client: A ``BinanceClient`` (or compatible duck-type / mock).
        symbol: Base asset, e.g. ``"BTC"``.
        interval: Kline interval polled each tick (default ``"1s"``).
        history_interval: Kline interval used for seeded history.
    """

    def __init__(
        self,
        client: BinanceClient,
        symbol: str,
        interval: str = "1s",
        history_interval: str = "1m",
    ) -> None:
        self._client = client
        self._symbol = symbol
        self._interval = interval
        self._history_interval = history_interval
        self._last_timestamp: Optional[int] = None
        self._failures = 0

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    async def history(self, count: int) -> list[PriceTick]:
        """Fetch recent klines, or an empty list if the provider is down."""
        if count <= 0:
            return []
        try:
            candles = await self._client.fetch_klines(
                self._symbol, self._history_interval, limit=count,
            )
        except (httpx.HTTPError, MarketDataError) as exc:
            logger.warning("History fetch for %s failed: %s", self._symbol, exc)
            return []
        if candles:
            self._last_timestamp = candles[-1].timestamp
        return candles

    async def next_tick(self, last_close: float) -> Optional[PriceTick]:
        """Return the newest kline if it is newer than the last one emitted."""
        try:
            candles = await self._client.fetch_klines(
                self._symbol, self._interval, limit=1,
            )
        except (httpx.HTTPError, MarketDataError) as exc:
            self._failures += 1
            logger.warning(
                "Live tick for %s failed (%d in a row), holding at %.5f: %s",
                self._symbol, self._failures, last_close, exc,
            )
            return None

        self._failures = 0
        if not candles:
            return None
        tick = candles[-1]
        if self._last_timestamp is not None and tick.timestamp <= self._last_timestamp:
            return None
        self._last_timestamp = tick.timestamp
        return tick
