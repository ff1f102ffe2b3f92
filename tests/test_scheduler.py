"""Tests for the periodic tick scheduler."""

import asyncio

import pytest

from tradedeck.sim.scheduler import TickScheduler


INTERVAL = 0.01


class TestTickScheduler:
    def test_rejects_non_positive_interval(self):
        async def _noop():
            return None

        with pytest.raises(ValueError, match="interval"):
            TickScheduler(0, _noop)

    @pytest.mark.asyncio
    async def test_invokes_callback_repeatedly(self):
        calls = []

        async def _cb():
            calls.append(1)

        scheduler = TickScheduler(INTERVAL, _cb)
        scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(INTERVAL * 10)
        await scheduler.aclose()
        assert len(calls) >= 2
        assert scheduler.tick_count == len(calls)
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        calls = []

        async def _cb():
            calls.append(1)

        scheduler = TickScheduler(INTERVAL, _cb)
        scheduler.start()
        scheduler.start()
        await asyncio.sleep(INTERVAL * 5)
        await scheduler.aclose()
        # A second task would roughly double the count.
        assert scheduler.tick_count == len(calls)

    @pytest.mark.asyncio
    async def test_pause_freezes_callbacks(self):
        calls = []

        async def _cb():
            calls.append(1)

        scheduler = TickScheduler(INTERVAL, _cb)
        scheduler.start()
        await asyncio.sleep(INTERVAL * 5)
        scheduler.pause()
        assert scheduler.is_paused
        # Let any in-flight sleep finish before sampling.
        await asyncio.sleep(INTERVAL * 2)
        frozen = len(calls)
        await asyncio.sleep(INTERVAL * 10)
        assert len(calls) == frozen

        scheduler.resume()
        assert not scheduler.is_paused
        await asyncio.sleep(INTERVAL * 10)
        await scheduler.aclose()
        assert len(calls) > frozen

    @pytest.mark.asyncio
    async def test_paused_before_start_never_fires(self):
        calls = []

        async def _cb():
            calls.append(1)

        scheduler = TickScheduler(INTERVAL, _cb)
        scheduler.pause()
        scheduler.start()
        await asyncio.sleep(INTERVAL * 5)
        await scheduler.aclose()
        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_loop_alive(self):
        calls = []

        async def _cb():
            calls.append(1)
            raise RuntimeError("feed exploded")

        scheduler = TickScheduler(INTERVAL, _cb)
        scheduler.start()
        await asyncio.sleep(INTERVAL * 10)
        assert scheduler.is_running
        await scheduler.aclose()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_cancel_is_safe_twice(self):
        async def _noop():
            return None

        scheduler = TickScheduler(INTERVAL, _noop)
        scheduler.start()
        scheduler.cancel()
        scheduler.cancel()
        await scheduler.aclose()
        assert not scheduler.is_running
