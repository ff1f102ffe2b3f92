"""Synthetic price feed — bounded random walk, no I/O.

Each candle opens at the previous close.  The close moves by at most
``volatility`` in either direction and the wicks extend up to
``wick_factor`` beyond the body, so the candle-shape invariant
``low <= min(open, close) <= max(open, close) <= high`` always holds.
"""

import logging
import time
from typing import Callable, Optional

import numpy as np

from tradedeck.market.models import PriceTick

logger = logging.getLogger("tradedeck.feed")

# Lowest close the walk may reach
PRICE_FLOOR = 0.01


def make_candle(
    last_close: float,
    timestamp: int,
    rng: np.random.Generator,
    volatility: float = 1.0,
    wick_factor: float = 0.5,
) -> PriceTick:
    """Generate one candle opening at *last_close*.

    Formula::

        close = open + (u1 - 0.5) × 2 × volatility
        high  = max(open, close) + u2 × wick_factor
        low   = min(open, close) - u3 × wick_factor

    with ``u1, u2, u3`` uniform on [0, 1).  The close is floored at
    ``PRICE_FLOOR``; a low that would reach zero is set to half the body
    minimum.
    """
    u1, u2, u3 = rng.random(3)
    open_ = float(last_close)
    close = max(open_ + (u1 - 0.5) * 2.0 * volatility, PRICE_FLOOR)
    body_high = max(open_, close)
    body_low = min(open_, close)
    high = body_high + u2 * wick_factor
    low = body_low - u3 * wick_factor
    if low <= 0:
        low = body_low / 2.0
    return PriceTick(
        timestamp=int(timestamp),
        open=open_,
        high=float(high),
        low=float(low),
        close=float(close),
    )


class SyntheticFeed:
    """Random-walk feed.

    Timestamps advance by exactly ``interval_seconds`` per candle, so a
    paused session resumes without gaps or repeats.

    Args:
        start_price: Price the walk starts from.
        volatility: Maximum close move per candle.
        wick_factor: Maximum wick length beyond the body.
        interval_seconds: Spacing of live ticks.
        history_spacing: Spacing of seeded history candles (default 60s).
        rng: Random generator; pass a seeded one for reproducible walks.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        start_price: float = 100.0,
        volatility: float = 1.0,
        wick_factor: float = 0.5,
        interval_seconds: float = 1.0,
        history_spacing: int = 60,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if start_price <= 0:
            raise ValueError(f"start_price must be positive, got {start_price}")
        self._start_price = start_price
        self._volatility = volatility
        self._wick_factor = wick_factor
        self._step = max(1, int(round(interval_seconds)))
        self._history_spacing = history_spacing
        self._rng = rng if rng is not None else np.random.default_rng()
        self._clock = clock
        self._last_timestamp: Optional[int] = None

    @property
    def start_price(self) -> float:
        return self._start_price

    async def history(self, count: int) -> list[PriceTick]:
        """Generate *count* chained candles ending at the current time."""
        if count <= 0:
            return []
        now = int(self._clock())
        first = now - (count - 1) * self._history_spacing
        candles: list[PriceTick] = []
        price = self._start_price
        for i in range(count):
            candle = make_candle(
                price, first + i * self._history_spacing, self._rng,
                self._volatility, self._wick_factor,
            )
            candles.append(candle)
            price = candle.close
        self._last_timestamp = candles[-1].timestamp
        logger.debug("Seeded %d synthetic candles ending at %.5f", count, price)
        return candles

    async def next_tick(self, last_close: float) -> Optional[PriceTick]:
        return self.generate(last_close)

    def generate(self, last_close: float) -> PriceTick:
        """Synchronously produce the next candle after *last_close*."""
        if self._last_timestamp is None:
            timestamp = int(self._clock())
        else:
            timestamp = self._last_timestamp + self._step
        tick = make_candle(
            last_close, timestamp, self._rng, self._volatility, self._wick_factor,
        )
        self._last_timestamp = timestamp
        return tick
