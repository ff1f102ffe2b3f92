"""Periodic tick scheduler with pause / resume / cancel.

Replaces a browser ``setInterval``: one asyncio task invokes an async
callback every *interval* seconds.  Pausing blocks the loop before the
next callback, so no callback runs while paused and none is replayed on
resume.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("tradedeck.scheduler")

TickCallback = Callable[[], Awaitable[object]]


class TickScheduler:
    """Drives *callback* at a fixed cadence.

    Args:
        interval: Seconds between callbacks.
        callback: Async callable invoked once per interval.
        name: Label used in log messages and the task name.
    """

    def __init__(
        self,
        interval: float,
        callback: TickCallback,
        name: str = "ticks",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._task: Optional[asyncio.Task] = None
        self._tick_count = 0

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the timer.  Must be called from a running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"scheduler:{self._name}",
        )
        logger.info(
            "Scheduler '%s' started (every %.2fs).", self._name, self._interval,
        )

    def pause(self) -> None:
        """Stop invoking the callback until :meth:`resume`."""
        self._resumed.clear()
        logger.info("Scheduler '%s' paused.", self._name)

    def resume(self) -> None:
        self._resumed.set()
        logger.info("Scheduler '%s' resumed.", self._name)

    def cancel(self) -> None:
        """Tear the timer down.  Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Scheduler '%s' cancelled.", self._name)

    async def aclose(self) -> None:
        """Cancel and wait for the timer task to finish."""
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_paused(self) -> bool:
        return not self._resumed.is_set()

    @property
    def tick_count(self) -> int:
        """Number of callbacks completed (successfully or not)."""
        return self._tick_count

    @property
    def interval(self) -> float:
        return self._interval

    # ── Loop ─────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            await self._resumed.wait()
            await asyncio.sleep(self._interval)
            # Paused while sleeping
            if not self._resumed.is_set():
                continue
            try:
                await self._callback()
            except Exception:
                logger.exception("Scheduler '%s' callback failed", self._name)
            self._tick_count += 1
