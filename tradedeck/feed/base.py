"""Price feed protocol.

Defines the interface every tick source must implement.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from tradedeck.market.models import PriceTick


@runtime_checkable
class PriceFeed(Protocol):
    """Interface that all price feeds must satisfy."""

    async def history(self, count: int) -> list[PriceTick]:
        """Return up to *count* candles ending now, oldest first."""
        ...

    async def next_tick(self, last_close: float) -> Optional[PriceTick]:
        """Return the next candle, or None when no new candle is available."""
        ...
