"""SessionManager — owns one DemoSession per client.

Each session gets its own feed and tick scheduler.  API handlers take the
session's lock before mutating it, so every session has a single writer.
"""

import logging
from typing import Callable, Optional

from tradedeck.config import Config
from tradedeck.feed.base import PriceFeed
from tradedeck.feed.registry import build_feed
from tradedeck.market.binance_client import BinanceClient
from tradedeck.repos.trade_repo import TradeRepo
from tradedeck.session import DemoSession

logger = logging.getLogger("tradedeck.session_manager")

FeedFactory = Callable[[Config], PriceFeed]


class SessionManager:
    """Lifecycle manager for demo sessions.

    Args:
        config:  Global ``Config`` loaded from ``.env``.
        trade_repo: Optional repo shared by all sessions.
        client: Shared ``BinanceClient`` for live feeds.
        feed_factory: Builds a feed per session; defaults to the feed
            registry keyed on ``config.feed_mode``.
    """

    def __init__(
        self,
        config: Config,
        trade_repo: Optional[TradeRepo] = None,
        client: Optional[BinanceClient] = None,
        feed_factory: Optional[FeedFactory] = None,
    ) -> None:
        self._config = config
        self._trade_repo = trade_repo
        self._client = client
        self._feed_factory = feed_factory
        self._sessions: dict[str, DemoSession] = {}

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def config(self) -> Config:
        return self._config

    @property
    def trade_repo(self) -> Optional[TradeRepo]:
        return self._trade_repo

    @property
    def market_client(self) -> BinanceClient:
        """Shared Binance client, created on first use in synthetic mode."""
        if self._client is None:
            self._client = BinanceClient(self._config)
        return self._client

    @property
    def sessions(self) -> dict[str, DemoSession]:
        """Map of session-name → ``DemoSession``."""
        return dict(self._sessions)

    @property
    def session_names(self) -> list[str]:
        return list(self._sessions.keys())

    def get(self, name: str) -> Optional[DemoSession]:
        return self._sessions.get(name)

    def create_session(self, name: str) -> DemoSession:
        """Register a session without seeding or starting it.

        Returns the existing session when *name* is already registered.
        """
        session = self._sessions.get(name)
        if session is not None:
            return session
        if self._feed_factory is not None:
            feed = self._feed_factory(self._config)
        else:
            feed = build_feed(self._config, self._client)
        session = DemoSession(
            name=name,
            config=self._config,
            feed=feed,
            trade_repo=self._trade_repo,
        )
        self._sessions[name] = session
        logger.info(
            "Registered session '%s' (%s feed, %s)",
            name, self._config.feed_mode, self._config.symbol,
        )
        return session

    async def open_session(self, name: str, start: bool = True) -> DemoSession:
        """Create, seed, and optionally start a session.

        Opening an existing session returns it unchanged.
        """
        existing = self._sessions.get(name)
        if existing is not None:
            return existing
        session = self.create_session(name)
        await session.seed()
        if start:
            session.start()
        return session

    async def close_session(self, name: str) -> bool:
        """Stop and forget a session.  Returns ``False`` if it was unknown."""
        session = self._sessions.pop(name, None)
        if session is None:
            return False
        await session.stop()
        logger.info("Closed session '%s'.", name)
        return True

    def pause_all(self) -> None:
        for session in self._sessions.values():
            session.pause()

    def resume_all(self) -> None:
        for session in self._sessions.values():
            session.resume()

    async def stop_all(self) -> None:
        """Cancel every session's scheduler (state is kept)."""
        for name, session in list(self._sessions.items()):
            await session.stop()
            logger.info("Stop signal sent to session '%s'.", name)

    def status(self, name: Optional[str] = None) -> dict:
        """Return aggregated or per-session status.

        Args:
            name: If given, return status for that session only.
        """
        if name is not None:
            session = self._sessions.get(name)
            if session is None:
                return {"error": f"Unknown session: {name}"}
            return session.status()

        return {
            "sessions": {n: s.status() for n, s in self._sessions.items()}
        }
