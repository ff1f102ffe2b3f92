"""Close-event stream — fan-out to subscribers plus a recent-events buffer."""

import logging
from collections import deque
from typing import Callable

from tradedeck.sim.models import CloseEvent

logger = logging.getLogger("tradedeck.events")

CloseListener = Callable[[CloseEvent], None]


class CloseEventStream:
    """Publishes close events to listeners and keeps the most recent ones.

    Args:
        max_recent: Size of the recent-events ring buffer (default 50).
    """

    def __init__(self, max_recent: int = 50) -> None:
        self._listeners: list[CloseListener] = []
        self._recent: deque[CloseEvent] = deque(maxlen=max_recent)

    def subscribe(self, listener: CloseListener) -> Callable[[], None]:
        """Register *listener* and return a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, event: CloseEvent) -> None:
        """Record *event* and deliver it to every listener.

        A failing listener is logged and skipped.
        """
        self._recent.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Close listener %r failed for order %s", listener, event.order_id,
                )

    def recent(self, limit: int = 20) -> list[CloseEvent]:
        """Return up to *limit* recent events, newest first."""
        if limit <= 0:
            return []
        events = list(self._recent)[-limit:]
        events.reverse()
        return events

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
