"""TradeDeck — demo trading session.

One session is the explicit context for a single demo account: it owns a
price feed, the order book, the balance ledger, the close-event stream,
the candle history, and the scheduler that drives them.  Each tick is
applied synchronously: advance the current price, evaluate exits, settle
realized P&L into the ledger, publish close events.
"""

import asyncio
import logging
import sqlite3
import time
from collections import deque
from dataclasses import replace
from typing import Optional

from tradedeck.config import Config
from tradedeck.feed.base import PriceFeed
from tradedeck.market.models import PriceTick, validate_tick
from tradedeck.repos.trade_repo import TradeRepo
from tradedeck.sim.errors import PriceUnavailableError
from tradedeck.sim.events import CloseEventStream
from tradedeck.sim.ledger import BalanceLedger
from tradedeck.sim.models import CloseEvent, Order
from tradedeck.sim.order_book import OrderBook
from tradedeck.sim.scheduler import TickScheduler
from tradedeck.sim.stats import calculate_stats

logger = logging.getLogger("tradedeck.session")


class DemoSession:
    """A single demo account driven by one price feed.

    Args:
        name: Session key (one per client).
        config: Application configuration.
        feed: Any ``PriceFeed`` implementation.
        trade_repo: Optional repo that records every close.
        max_candles: Size of the candle history kept for charts.
        max_closed: Number of closed trades kept in memory for stats; the
            trade repo holds the full history.
    """

    def __init__(
        self,
        name: str,
        config: Config,
        feed: PriceFeed,
        trade_repo: Optional[TradeRepo] = None,
        max_candles: int = 500,
        max_closed: int = 1_000,
    ) -> None:
        self.name = name
        self._config = config
        self._feed = feed
        self._trade_repo = trade_repo
        self._book = OrderBook(
            contract_multiplier=config.contract_multiplier,
            activate_pending=config.activate_pending_orders,
        )
        self._ledger = BalanceLedger(config.initial_balance)
        self._events = CloseEventStream()
        self._candles: deque[PriceTick] = deque(maxlen=max_candles)
        self._closed: deque[CloseEvent] = deque(maxlen=max_closed)
        self._current_price: float = config.start_price
        # A live session has no price until the provider delivers one
        self._has_price: bool = not config.is_live
        self._last_tick: Optional[PriceTick] = None
        self._tick_count: int = 0
        self._paused: bool = False
        self._scheduler: Optional[TickScheduler] = None
        self.lock = asyncio.Lock()

    # ── Components ───────────────────────────────────────────────────────

    @property
    def book(self) -> OrderBook:
        return self._book

    @property
    def ledger(self) -> BalanceLedger:
        return self._ledger

    @property
    def events(self) -> CloseEventStream:
        return self._events

    # ── State ────────────────────────────────────────────────────────────

    @property
    def current_price(self) -> float:
        return self._current_price

    @property
    def has_price(self) -> bool:
        """``False`` until a live session has seen its first real price."""
        return self._has_price

    @property
    def last_tick(self) -> Optional[PriceTick]:
        return self._last_tick

    @property
    def tick_count(self) -> int:
        """Ticks applied since the session was created (seed excluded)."""
        return self._tick_count

    @property
    def balance(self) -> float:
        return self._ledger.balance

    @property
    def orders(self) -> list[Order]:
        return self._book.orders

    @property
    def closed_trades(self) -> list[CloseEvent]:
        return list(self._closed)

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.is_running

    def candles(self, limit: Optional[int] = None) -> list[PriceTick]:
        """Return the candle history, oldest first."""
        candles = list(self._candles)
        if limit is not None:
            candles = candles[-limit:] if limit > 0 else []
        return candles

    def unrealized_pnl(self) -> float:
        return self._book.unrealized_pnl(self._current_price)

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def seed(self) -> int:
        """Load the initial candle history from the feed.

        Returns the number of candles loaded.  With no history a synthetic
        session starts at the configured start price, while a live session
        refuses orders until its first tick arrives.
        """
        candles = await self._feed.history(self._config.history_candles)
        for candle in candles:
            self._candles.append(candle)
        if candles:
            self._last_tick = candles[-1]
            self._current_price = candles[-1].close
            self._has_price = True
        logger.info(
            "Session '%s' seeded with %d candles at %.5f",
            self.name, len(candles), self._current_price,
        )
        return len(candles)

    def start(self) -> None:
        """Start the tick timer.  Must be called from a running event loop."""
        if self._scheduler is None:
            self._scheduler = TickScheduler(
                self._config.tick_interval_seconds,
                self.step,
                name=self.name,
            )
        self._scheduler.start()
        if self._paused:
            self._scheduler.pause()

    async def stop(self) -> None:
        """Cancel the tick timer.  Order-book state is kept."""
        if self._scheduler is not None:
            await self._scheduler.aclose()
            self._scheduler = None
            logger.info("Session '%s' stopped.", self.name)

    def pause(self) -> None:
        """Freeze tick generation and order evaluation."""
        self._paused = True
        if self._scheduler is not None:
            self._scheduler.pause()
        logger.info("Session '%s' paused.", self.name)

    def resume(self) -> None:
        self._paused = False
        if self._scheduler is not None:
            self._scheduler.resume()
        logger.info("Session '%s' resumed.", self.name)

    # ── Ticks ────────────────────────────────────────────────────────────

    async def step(self) -> Optional[PriceTick]:
        """Pull one tick from the feed and apply it.

        Returns the applied tick, or None when paused or when the feed had
        nothing new.  The lock is only held while the tick is applied, so a
        slow provider never blocks order entry.
        """
        if self._paused:
            return None
        tick = await self._feed.next_tick(self._current_price)
        if tick is None:
            return None
        async with self.lock:
            if self._paused:
                return None
            self.apply_tick(tick)
        return tick

    def apply_tick(self, tick: PriceTick) -> list[CloseEvent]:
        """Advance the session by one tick and return the resulting closes.

        Ticks that arrive while paused, that are not newer than the last
        tick, or that violate the candle shape are dropped.
        """
        if self._paused:
            logger.debug("Session '%s' paused, dropping tick %d", self.name, tick.timestamp)
            return []
        if self._last_tick is not None and tick.timestamp <= self._last_tick.timestamp:
            logger.warning(
                "Session '%s' dropping out-of-order tick %d (last %d)",
                self.name, tick.timestamp, self._last_tick.timestamp,
            )
            return []
        try:
            validate_tick(tick)
        except ValueError as exc:
            logger.warning("Session '%s' dropping invalid tick: %s", self.name, exc)
            return []

        self._candles.append(tick)
        self._last_tick = tick
        self._current_price = tick.close
        self._has_price = True
        self._tick_count += 1

        return [self._settle(event) for event in self._book.on_tick(tick)]

    # ── Orders ───────────────────────────────────────────────────────────

    def place_order(
        self,
        side: str,
        kind: str,
        quantity: float,
        entry_price: Optional[float] = None,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> Order:
        """Place an order at the session's current price.

        Raises ``InvalidOrderError`` (or ``InvalidQuantityError``) without
        mutating the book when the request is invalid, and
        ``PriceUnavailableError`` while a live session has no price yet.
        """
        if not self._has_price:
            raise PriceUnavailableError(
                f"No {self._config.symbol} price received yet; try again shortly"
            )
        return self._book.place_order(
            side=side,
            kind=kind,
            quantity=quantity,
            current_price=self._current_price,
            entry_price=entry_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            opened_at=self._now(),
        )

    def close_order(self, order_id: str) -> CloseEvent:
        """Close an order manually at the current price.

        Raises ``OrderNotFoundError`` if *order_id* is unknown.
        """
        event = self._book.close_order(
            order_id, self._current_price, "manual", closed_at=self._now(),
        )
        return self._settle(event)

    def _settle(self, event: CloseEvent) -> CloseEvent:
        balance = self._ledger.apply_realized_pnl(event.realized_pnl)
        event = replace(event, balance_after=balance)
        self._closed.append(event)
        if self._trade_repo is not None:
            try:
                self._trade_repo.insert_closed_trade(self.name, event)
            except sqlite3.Error as exc:
                logger.error(
                    "Session '%s' failed to record close of order %s: %s",
                    self.name, event.order_id, exc,
                )
        self._events.publish(event)
        return event

    def _now(self) -> int:
        if self._last_tick is not None:
            return self._last_tick.timestamp
        return int(time.time())

    # ── Reporting ────────────────────────────────────────────────────────

    def stats(self) -> dict:
        """Statistics over the closed trades still held in memory."""
        return calculate_stats(self._closed)

    def status(self) -> dict:
        """Snapshot of the session for the dashboard."""
        unrealized = self.unrealized_pnl()
        return {
            "session": self.name,
            "symbol": self._config.symbol,
            "feed_mode": self._config.feed_mode,
            "running": self.is_running,
            "paused": self._paused,
            "current_price": self._current_price,
            "price_available": self._has_price,
            "last_tick_at": self._last_tick.timestamp if self._last_tick else None,
            "tick_count": self._tick_count,
            "initial_balance": self._ledger.initial_balance,
            "balance": round(self._ledger.balance, 2),
            "unrealized_pnl": round(unrealized, 2),
            "equity": round(self._ledger.equity(unrealized), 2),
            "open_orders": len(self._book.open_orders),
            "pending_orders": len(self._book.pending_orders),
            "closed_trades": self._ledger.close_count,
        }
