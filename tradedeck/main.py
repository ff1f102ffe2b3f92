"""TradeDeck — application entry point.

Boots the FastAPI internal server and provides the CLI entry point that
runs the API and the default demo session together.
"""

import logging

from fastapi import FastAPI

from tradedeck.api.routers import router

app = FastAPI(title="TradeDeck Internal API", version="0.1.0")
app.include_router(router)
app.state.manager = None

logger = logging.getLogger("tradedeck")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def configure_app(manager) -> FastAPI:
    """Attach a ``SessionManager`` to the API and return the app."""
    app.state.manager = manager
    return app


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run the API with a default session."""
    import argparse
    import asyncio
    import dataclasses

    from tradedeck.config import FEED_MODES, load_config
    from tradedeck.market.binance_client import BinanceClient
    from tradedeck.repos.db import init_db
    from tradedeck.repos.trade_repo import TradeRepo
    from tradedeck.session_manager import SessionManager

    parser = argparse.ArgumentParser(description="TradeDeck demo trading server")
    parser.add_argument(
        "--feed",
        choices=FEED_MODES,
        default=None,
        help="Price feed (default: FEED_MODE or synthetic)",
    )
    parser.add_argument("--symbol", help="Base asset for the live feed, e.g. BTC")
    parser.add_argument("--port", type=int, help="API port (default: API_PORT or 8080)")
    parser.add_argument(
        "--session",
        default="default",
        help="Name of the session opened at startup",
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Do not record closed trades to SQLite",
    )
    args = parser.parse_args(argv)

    config = load_config()
    overrides = {}
    if args.feed:
        overrides["feed_mode"] = args.feed
    if args.symbol:
        overrides["symbol"] = args.symbol.upper()
    if args.port:
        overrides["api_port"] = args.port
    if overrides:
        config = dataclasses.replace(config, **overrides)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    trade_repo = None
    if not args.no_persist:
        init_db(config.db_path)
        trade_repo = TradeRepo(config.db_path)

    client = BinanceClient(config) if config.is_live else None
    manager = SessionManager(config=config, trade_repo=trade_repo, client=client)
    configure_app(manager)

    try:
        asyncio.run(_serve(manager, args.session, config.api_port))
    except KeyboardInterrupt:
        logger.info("Shutdown signal received, stopping.")

    from tradedeck.cli.dashboard import print_status

    session = manager.get(args.session)
    if session is not None:
        print_status(session.status())


async def _serve(manager, session_name: str, port: int) -> None:
    """Open the default session and serve the API until shutdown."""
    import uvicorn

    session = await manager.open_session(session_name)
    logger.info(
        "Session '%s' running on %s feed (%s) at %.5f",
        session_name, manager.config.feed_mode, manager.config.symbol,
        session.current_price,
    )

    uvi_config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(uvi_config)

    logger.info("API available at http://localhost:%d", port)
    try:
        await server.serve()
    finally:
        await manager.stop_all()
        logger.info("TradeDeck stopped.")


if __name__ == "__main__":
    _run_cli()
