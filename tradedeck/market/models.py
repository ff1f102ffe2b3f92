"""Market data models — typed representations of price observations."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PriceTick:
    """A single candlestick observation.

    ``timestamp`` is epoch seconds (candle open time).
    """

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> dict:
        return {
            "time": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class Ticker:
    """24-hour rolling ticker for one symbol."""

    symbol: str
    price: float
    change: float
    change_percent: float
    high: float
    low: float
    volume: float

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "high": self.high,
            "low": self.low,
            "volume": self.volume,
        }


def validate_tick(tick: PriceTick) -> PriceTick:
    """Check the candle-shape invariant and return *tick* unchanged.

    Raises:
        ValueError: If any price is non-finite or non-positive, or if the
            wicks do not enclose the body.
    """
    prices = (tick.open, tick.high, tick.low, tick.close)
    if not all(math.isfinite(p) for p in prices):
        raise ValueError(f"tick prices must be finite, got {prices}")
    if tick.low <= 0:
        raise ValueError(f"tick prices must be positive, got low={tick.low}")
    if tick.high < max(tick.open, tick.close):
        raise ValueError(
            f"tick high {tick.high} below body max {max(tick.open, tick.close)}"
        )
    if tick.low > min(tick.open, tick.close):
        raise ValueError(
            f"tick low {tick.low} above body min {min(tick.open, tick.close)}"
        )
    return tick
