"""Tests for DemoSession — tick application, settlement, pause/resume."""

import asyncio

import numpy as np
import pytest

from tradedeck.config import Config
from tradedeck.feed.synthetic import SyntheticFeed
from tradedeck.market.models import PriceTick
from tradedeck.repos.db import init_db
from tradedeck.repos.trade_repo import TradeRepo
from tradedeck.session import DemoSession
from tradedeck.sim.errors import (
    InvalidQuantityError,
    OrderNotFoundError,
    PriceUnavailableError,
)


def _make_config(**overrides) -> Config:
    """Build a Config with sensible test defaults."""
    defaults = dict(
        symbol="BTC",
        feed_mode="synthetic",
        tick_interval_seconds=0.01,
        initial_balance=10_000.0,
        contract_multiplier=100.0,
        start_price=100.0,
        volatility=1.0,
        wick_factor=0.5,
        history_candles=5,
        kline_interval="1s",
        activate_pending_orders=False,
        binance_base_url="https://api.binance.com",
        db_path=":memory:",
        log_level="WARNING",
        api_port=8080,
    )
    defaults.update(overrides)
    return Config(**defaults)


def _tick(ts: int, close: float) -> PriceTick:
    return PriceTick(ts, close, close + 0.25, close - 0.25, close)


class ScriptedFeed:
    """Feed that replays a fixed list of ticks, then yields nothing."""

    def __init__(self, ticks, history=None):
        self._ticks = list(ticks)
        self._history = list(history or [])
        self.calls = 0

    async def history(self, count):
        return self._history[-count:] if count > 0 else []

    async def next_tick(self, last_close):
        self.calls += 1
        if not self._ticks:
            return None
        return self._ticks.pop(0)


def _session(ticks=(), history=None, **overrides) -> DemoSession:
    return DemoSession("test", _make_config(**overrides), ScriptedFeed(ticks, history))


# ── Seeding ──────────────────────────────────────────────────────────────


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_sets_price_from_history(self):
        session = _session(history=[_tick(1, 90.0), _tick(2, 91.5)])
        assert await session.seed() == 2
        assert session.current_price == 91.5
        assert session.last_tick.timestamp == 2
        assert [c.close for c in session.candles()] == [90.0, 91.5]
        assert session.tick_count == 0

    @pytest.mark.asyncio
    async def test_empty_history_keeps_start_price(self):
        session = _session(start_price=250.0)
        assert await session.seed() == 0
        assert session.current_price == 250.0
        assert session.last_tick is None


# ── Ticks ────────────────────────────────────────────────────────────────


class TestApplyTick:
    def test_advances_price(self):
        session = _session()
        session.apply_tick(_tick(10, 101.0))
        assert session.current_price == 101.0
        assert session.tick_count == 1
        assert session.candles(limit=1)[0].timestamp == 10

    def test_out_of_order_tick_dropped(self):
        session = _session()
        session.apply_tick(_tick(10, 101.0))
        session.apply_tick(_tick(10, 150.0))
        session.apply_tick(_tick(9, 150.0))
        assert session.current_price == 101.0
        assert session.tick_count == 1

    def test_invalid_tick_dropped(self):
        session = _session()
        session.apply_tick(PriceTick(10, 100.0, 99.0, 98.0, 100.0))
        assert session.tick_count == 0
        assert session.current_price == 100.0

    def test_stop_loss_settles_into_balance(self):
        session = _session()
        order = session.place_order("buy", "market", 1, stop_loss=99.0, take_profit=101.0)
        closes = session.apply_tick(_tick(10, 98.5))
        assert [c.order_id for c in closes] == [order.order_id]
        assert closes[0].reason == "stop_loss"
        assert closes[0].balance_after == pytest.approx(9_900.0)
        assert session.balance == pytest.approx(9_900.0)
        assert session.orders == []

    def test_take_profit_settles_into_balance(self):
        session = _session()
        session.place_order("sell", "market", 2, stop_loss=101.0, take_profit=99.0)
        closes = session.apply_tick(_tick(10, 98.0))
        assert closes[0].reason == "take_profit"
        assert session.balance == pytest.approx(10_200.0)

    def test_candle_history_is_bounded(self):
        session = DemoSession("cap", _make_config(), ScriptedFeed([]), max_candles=3)
        for ts in range(1, 6):
            session.apply_tick(_tick(ts, 100.0 + ts))
        assert [c.timestamp for c in session.candles()] == [3, 4, 5]
        assert session.candles(limit=0) == []


# ── Orders ───────────────────────────────────────────────────────────────


class TestOrders:
    def test_manual_close_realizes_pnl(self):
        """Buy 1 at 100, price moves to 105, close → balance 10 500."""
        session = _session()
        order = session.place_order("buy", "market", 1)
        session.apply_tick(_tick(10, 105.0))
        event = session.close_order(order.order_id)
        assert event.exit_price == 105.0
        assert event.realized_pnl == pytest.approx(500.0)
        assert event.closed_at == 10
        assert session.balance == pytest.approx(10_500.0)
        assert session.closed_trades == [event]

    def test_invalid_quantity_leaves_state_untouched(self):
        session = _session()
        with pytest.raises(InvalidQuantityError):
            session.place_order("buy", "market", 0)
        assert session.orders == []
        assert session.balance == 10_000.0

    def test_close_unknown_order(self):
        with pytest.raises(OrderNotFoundError):
            _session().close_order("999")

    def test_balance_equals_seed_plus_realized(self):
        session = _session()
        rng = np.random.default_rng(3)
        price = 100.0
        for ts in range(1, 201):
            if ts % 7 == 0:
                side = "buy" if rng.random() < 0.5 else "sell"
                session.place_order(
                    side, "market", float(rng.integers(1, 4)),
                    stop_loss=price - 2 if side == "buy" else price + 2,
                    take_profit=price + 2 if side == "buy" else price - 2,
                )
            if ts % 11 == 0 and session.book.open_orders:
                session.close_order(session.book.open_orders[0].order_id)
            price = max(price + float(rng.uniform(-1, 1)), 5.0)
            session.apply_tick(_tick(ts, price))

        realized = sum(e.realized_pnl for e in session.closed_trades)
        assert session.closed_trades
        assert session.balance == pytest.approx(10_000.0 + realized)

    def test_subscriber_sees_every_close(self):
        session = _session()
        seen = []
        session.events.subscribe(seen.append)
        a = session.place_order("buy", "market", 1, stop_loss=99.0)
        b = session.place_order("buy", "market", 1)
        session.apply_tick(_tick(10, 98.0))
        session.close_order(b.order_id)
        assert [e.order_id for e in seen] == [a.order_id, b.order_id]
        assert [e.order_id for e in session.events.recent()] == [b.order_id, a.order_id]

    def test_status_snapshot(self):
        session = _session()
        session.place_order("buy", "market", 1)
        session.place_order("buy", "limit", 1, entry_price=90.0)
        session.apply_tick(_tick(10, 102.0))
        status = session.status()
        assert status["session"] == "test"
        assert status["current_price"] == 102.0
        assert status["open_orders"] == 1
        assert status["pending_orders"] == 1
        assert status["unrealized_pnl"] == pytest.approx(200.0)
        assert status["equity"] == pytest.approx(10_200.0)
        assert status["balance"] == 10_000.0
        assert status["running"] is False


# ── Step / pause ─────────────────────────────────────────────────────────


class TestStepAndPause:
    @pytest.mark.asyncio
    async def test_step_applies_feed_tick(self):
        session = _session(ticks=[_tick(1, 100.5), _tick(2, 101.0)])
        assert (await session.step()).timestamp == 1
        assert (await session.step()).timestamp == 2
        assert await session.step() is None
        assert session.tick_count == 2

    @pytest.mark.asyncio
    async def test_paused_session_ignores_ticks(self):
        session = _session(ticks=[_tick(1, 100.5)])
        order = session.place_order("buy", "market", 1, stop_loss=99.0)
        session.pause()
        assert await session.step() is None
        assert session.apply_tick(_tick(5, 50.0)) == []
        assert session.book.get(order.order_id).status == "open"
        assert session.tick_count == 0

        session.resume()
        assert (await session.step()).timestamp == 1

    @pytest.mark.asyncio
    async def test_pause_resume_keeps_timestamps_contiguous(self):
        feed = SyntheticFeed(rng=np.random.default_rng(11), clock=lambda: 1_000.0)
        session = DemoSession("walk", _make_config(), feed)
        await session.seed()

        for _ in range(3):
            await session.step()
        session.pause()
        for _ in range(3):
            assert await session.step() is None
        session.resume()
        for _ in range(3):
            await session.step()

        stamps = [c.timestamp for c in session.candles(limit=6)]
        assert stamps == list(range(1_001, 1_007))
        assert session.tick_count == 6

    @pytest.mark.asyncio
    async def test_scheduler_drives_ticks(self):
        feed = SyntheticFeed(rng=np.random.default_rng(2), clock=lambda: 1_000.0)
        session = DemoSession("timer", _make_config(), feed)
        await session.seed()
        session.start()
        assert session.is_running
        await asyncio.sleep(0.1)
        await session.stop()
        assert not session.is_running
        assert session.tick_count >= 2
        stamps = [c.timestamp for c in session.candles(limit=session.tick_count)]
        assert stamps == list(range(1_001, 1_001 + session.tick_count))


# ── Persistence ──────────────────────────────────────────────────────────


class TestPersistence:
    def test_closes_are_recorded(self, tmp_path):
        db_path = str(tmp_path / "trades.db")
        init_db(db_path)
        repo = TradeRepo(db_path)
        session = DemoSession("persist", _make_config(), ScriptedFeed([]), trade_repo=repo)

        order = session.place_order("buy", "market", 1, take_profit=101.0)
        session.apply_tick(_tick(10, 101.5))

        result = repo.get_trades(session_name="persist")
        assert result["total"] == 1
        row = result["trades"][0]
        assert row["order_id"] == order.order_id
        assert row["reason"] == "take_profit"
        assert row["realized_pnl"] == pytest.approx(100.0)
        assert row["balance_after"] == pytest.approx(10_100.0)

    def test_repo_failure_does_not_block_settlement(self, tmp_path):
        # Tables never created: inserts fail with sqlite3.OperationalError.
        repo = TradeRepo(str(tmp_path / "empty.db"))
        session = DemoSession("broken", _make_config(), ScriptedFeed([]), trade_repo=repo)
        order = session.place_order("buy", "market", 1)
        session.apply_tick(_tick(10, 103.0))
        event = session.close_order(order.order_id)
        assert event.realized_pnl == pytest.approx(300.0)
        assert session.balance == pytest.approx(10_300.0)


# ── Lock scope ───────────────────────────────────────────────────────────


class BlockedFeed:
    """Feed whose next tick only arrives once ``release`` is set."""

    def __init__(self, tick):
        self._tick = tick
        self.release = asyncio.Event()

    async def history(self, count):
        return []

    async def next_tick(self, last_close):
        await self.release.wait()
        return self._tick


class TestLockScope:
    @pytest.mark.asyncio
    async def test_slow_feed_does_not_block_order_entry(self):
        feed = BlockedFeed(_tick(10, 101.0))
        session = DemoSession("slow", _make_config(), feed)
        step = asyncio.create_task(session.step())
        await asyncio.sleep(0)

        async def _place():
            async with session.lock:
                return session.place_order("buy", "market", 1)

        order = await asyncio.wait_for(_place(), timeout=0.5)
        assert order.entry_price == 100.0

        feed.release.set()
        assert (await step).timestamp == 10
        assert session.current_price == 101.0

    @pytest.mark.asyncio
    async def test_tick_dropped_if_paused_while_fetching(self):
        feed = BlockedFeed(_tick(10, 101.0))
        session = DemoSession("slow", _make_config(), feed)
        step = asyncio.create_task(session.step())
        await asyncio.sleep(0)
        session.pause()
        feed.release.set()
        assert await step is None
        assert session.tick_count == 0


# ── Live price availability ──────────────────────────────────────────────


class TestLivePriceAvailability:
    @pytest.mark.asyncio
    async def test_orders_refused_until_first_live_price(self):
        session = DemoSession(
            "live", _make_config(feed_mode="live"), ScriptedFeed([_tick(10, 60_000.0)]),
        )
        assert await session.seed() == 0
        assert session.has_price is False
        assert session.status()["price_available"] is False

        with pytest.raises(PriceUnavailableError):
            session.place_order("buy", "market", 1)
        assert session.orders == []

        await session.step()
        order = session.place_order("buy", "market", 1)
        assert order.entry_price == 60_000.0
        assert session.close_order(order.order_id).realized_pnl == 0.0
        assert session.balance == 10_000.0

    @pytest.mark.asyncio
    async def test_seeded_history_counts_as_price(self):
        session = DemoSession(
            "live", _make_config(feed_mode="live"),
            ScriptedFeed([], history=[_tick(1, 59_000.0)]),
        )
        await session.seed()
        assert session.has_price is True
        assert session.place_order("sell", "market", 1).entry_price == 59_000.0

    def test_synthetic_session_prices_from_start(self):
        session = _session()
        assert session.has_price is True


# ── Memory bounds ────────────────────────────────────────────────────────


class TestClosedTradeBound:
    def test_closed_trades_are_bounded_but_counted(self):
        session = DemoSession("cap", _make_config(), ScriptedFeed([]), max_closed=2)
        for _ in range(4):
            order = session.place_order("buy", "market", 1)
            session.close_order(order.order_id)
        assert len(session.closed_trades) == 2
        assert session.status()["closed_trades"] == 4
        assert session.ledger.close_count == 4
