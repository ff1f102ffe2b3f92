"""Feed registry — maps feed modes to factories.

Used by the session manager to build a feed from ``Config.feed_mode``.
"""

from typing import Callable, Optional

from tradedeck.config import Config
from tradedeck.feed.base import PriceFeed
from tradedeck.feed.live import LiveFeed
from tradedeck.feed.synthetic import SyntheticFeed
from tradedeck.market.binance_client import BinanceClient


def _synthetic(config: Config, client: Optional[BinanceClient]) -> PriceFeed:
    return SyntheticFeed(
        start_price=config.start_price,
        volatility=config.volatility,
        wick_factor=config.wick_factor,
        interval_seconds=config.tick_interval_seconds,
    )


def _live(config: Config, client: Optional[BinanceClient]) -> PriceFeed:
    return LiveFeed(
        client=client if client is not None else BinanceClient(config),
        symbol=config.symbol,
        interval=config.kline_interval,
    )


FEED_REGISTRY: dict[str, Callable[[Config, Optional[BinanceClient]], PriceFeed]] = {
    "synthetic": _synthetic,
    "live": _live,
}


def build_feed(config: Config, client: Optional[BinanceClient] = None) -> PriceFeed:
    """Instantiate the feed for ``config.feed_mode``.

    Raises ``KeyError`` if the mode is not registered.
    """
    if config.feed_mode not in FEED_REGISTRY:
        raise KeyError(
            f"Unknown feed mode '{config.feed_mode}'. "
            f"Available: {', '.join(FEED_REGISTRY.keys())}"
        )
    return FEED_REGISTRY[config.feed_mode](config, client)
