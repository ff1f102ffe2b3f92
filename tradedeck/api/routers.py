"""Internal API routers — /sessions, /trades, /market, /calculator endpoints.

No business logic.  Parses request bodies into typed arguments and
delegates to the ``SessionManager`` held on ``app.state.manager``.
"""

import logging
import math
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from tradedeck.calculator.lot_size import calculate_lot_size, search_pairs
from tradedeck.session import DemoSession
from tradedeck.session_manager import SessionManager
from tradedeck.sim.errors import (
    InvalidOrderError,
    MarketDataError,
    OrderNotFoundError,
    PriceUnavailableError,
)

logger = logging.getLogger("tradedeck.api")
router = APIRouter()


# ── Dependencies ─────────────────────────────────────────────────────────


def get_manager(request: Request) -> Optional[SessionManager]:
    """Return the ``SessionManager`` attached at startup, if any."""
    return getattr(request.app.state, "manager", None)


def _no_manager() -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "No session manager"})


def _unknown_session(name: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": f"Unknown session: {name}"})


def _validation_error(errors: list[str]) -> JSONResponse:
    return JSONResponse(status_code=400, content={"status": "error", "errors": errors})


# ── Body parsing ─────────────────────────────────────────────────────────


def _parse_number(body: dict, key: str, errors: list[str]) -> Optional[float]:
    """Read an optional numeric field; blank values mean "not set"."""
    raw = body.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        errors.append(f"{key} must be a number")
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        errors.append(f"{key} must be a number")
        return None
    if not math.isfinite(value):
        errors.append(f"{key} must be a number")
        return None
    return value


def parse_order_body(body: dict) -> tuple[dict, list[str]]:
    """Map a raw order request into ``DemoSession.place_order`` kwargs.

    Returns ``(kwargs, errors)``; *errors* is empty when the body is valid.
    """
    errors: list[str] = []

    quantity = _parse_number(body, "quantity", [])
    if quantity is None or quantity <= 0:
        errors.append("Please enter a valid quantity")

    kwargs = {
        "side": str(body.get("side", "")).lower(),
        "kind": str(body.get("kind") or "market").lower(),
        "quantity": quantity,
        "entry_price": _parse_number(body, "price", errors),
        "stop_loss": _parse_number(body, "stop_loss", errors),
        "take_profit": _parse_number(body, "take_profit", errors),
    }
    return kwargs, errors


# ── Sessions ─────────────────────────────────────────────────────────────


@router.get("/sessions")
async def list_sessions(manager: Optional[SessionManager] = Depends(get_manager)):
    """Return status for every open session."""
    if manager is None:
        return {"sessions": {}}
    return manager.status()


@router.post("/sessions/{name}")
async def open_session(
    name: str,
    start: bool = Query(default=True),
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Open (seed and start) a session.  Idempotent."""
    if manager is None:
        return _no_manager()
    session = await manager.open_session(name, start=start)
    return session.status()


@router.delete("/sessions/{name}")
async def close_session(
    name: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Stop and discard a session."""
    if manager is None:
        return _no_manager()
    if not await manager.close_session(name):
        return _unknown_session(name)
    return {"status": "closed", "session": name}


def _lookup(manager: Optional[SessionManager], name: str):
    """Return ``(session, None)`` or ``(None, error_response)``."""
    if manager is None:
        return None, _no_manager()
    session = manager.get(name)
    if session is None:
        return None, _unknown_session(name)
    return session, None


@router.get("/sessions/{name}/status")
async def session_status(
    name: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    return session.status()


# ── Orders ───────────────────────────────────────────────────────────────


def _order_view(session: DemoSession, order) -> dict:
    """Order dict with live P&L at the session's current price."""
    data = order.to_dict()
    pnl = session.book.unrealized_pnl_for(order, session.current_price)
    data["unrealized_pnl"] = round(pnl, 2)
    return data


@router.get("/sessions/{name}/orders")
async def list_orders(
    name: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Return open and pending orders with unrealized P&L."""
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    return {
        "orders": [_order_view(session, o) for o in session.orders],
        "current_price": session.current_price,
    }


@router.post("/sessions/{name}/orders")
async def place_order(
    name: str,
    body: dict,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Place a demo order.

    Body fields: ``side`` (buy|sell), ``kind`` (market|limit|buy_stop|
    sell_stop, default market), ``quantity``, optional ``price``,
    ``stop_loss`` and ``take_profit``.  Numbers may be sent as strings.
    """
    session, error = _lookup(manager, name)
    if error is not None:
        return error

    kwargs, errors = parse_order_body(body)
    if errors:
        logger.info("Rejected order for session '%s': %s", name, "; ".join(errors))
        return _validation_error(errors)

    async with session.lock:
        try:
            order = session.place_order(**kwargs)
        except PriceUnavailableError as exc:
            return JSONResponse(
                status_code=503, content={"status": "error", "errors": [str(exc)]},
            )
        except InvalidOrderError as exc:
            return _validation_error([str(exc)])

    return {"status": "ok", "order": _order_view(session, order)}


@router.post("/sessions/{name}/orders/{order_id}/close")
async def close_order(
    name: str,
    order_id: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Close an order at the current price and return the close event."""
    session, error = _lookup(manager, name)
    if error is not None:
        return error

    async with session.lock:
        try:
            event = session.close_order(order_id)
        except OrderNotFoundError:
            return JSONResponse(
                status_code=404, content={"error": f"Unknown order: {order_id}"},
            )

    return {"status": "closed", "event": event.to_dict(), "balance": event.balance_after}


# ── Feed data ────────────────────────────────────────────────────────────


@router.get("/sessions/{name}/events")
async def recent_events(
    name: str,
    limit: int = Query(default=20, ge=1, le=50),
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Return recent close events, newest first."""
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    return {"events": [e.to_dict() for e in session.events.recent(limit)]}


@router.get("/sessions/{name}/candles")
async def candles(
    name: str,
    limit: int = Query(default=100, ge=1, le=500),
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Return the candle history, oldest first."""
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    return {"candles": [c.to_dict() for c in session.candles(limit)]}


@router.get("/sessions/{name}/stats")
async def session_stats(
    name: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    return session.stats()


# ── Control actions ──────────────────────────────────────────────────────


@router.post("/sessions/{name}/control/pause")
async def pause_session(
    name: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Pause ticks and order evaluation for one session."""
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    session.pause()
    return {"status": "paused", "session": name}


@router.post("/sessions/{name}/control/resume")
async def resume_session(
    name: str,
    manager: Optional[SessionManager] = Depends(get_manager),
):
    session, error = _lookup(manager, name)
    if error is not None:
        return error
    session.resume()
    return {"status": "resumed", "session": name}


# ── Trade history ────────────────────────────────────────────────────────


@router.get("/trades")
async def get_trades(
    limit: int = Query(default=20, ge=1, le=100),
    session: Optional[str] = Query(default=None),
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """Return persisted closed trades."""
    if manager is None or manager.trade_repo is None:
        return {"trades": [], "total": 0, "total_pnl": 0.0}
    return manager.trade_repo.get_trades(limit=limit, session_name=session)


# ── Market data ──────────────────────────────────────────────────────────


@router.get("/market/ticker")
async def ticker(
    symbol: Optional[str] = Query(default=None),
    manager: Optional[SessionManager] = Depends(get_manager),
):
    """24h ticker for *symbol* (defaults to the configured symbol)."""
    if manager is None:
        return _no_manager()
    symbol = (symbol or manager.config.symbol).upper()
    try:
        result = await manager.market_client.get_ticker(symbol)
    except (httpx.HTTPError, MarketDataError) as exc:
        logger.warning("Ticker lookup for %s failed: %s", symbol, exc)
        return JSONResponse(
            status_code=502, content={"error": f"Ticker unavailable for {symbol}"},
        )
    return result.to_dict()


# ── Calculator ───────────────────────────────────────────────────────────


@router.get("/calculator/lot-size")
async def lot_size(
    balance: float = Query(...),
    risk_pct: float = Query(...),
    stop_loss_pips: float = Query(...),
    pair: str = Query(default="EUR/USD"),
):
    """Position size for a fixed-percentage risk."""
    try:
        result = calculate_lot_size(balance, risk_pct, stop_loss_pips, pair)
    except ValueError as exc:
        return _validation_error([str(exc)])
    return {
        "pair": pair.upper(),
        "lot_size": result.lot_size,
        "risk_amount": result.risk_amount,
        "pip_value": result.pip_value,
    }


@router.get("/calculator/pairs")
async def pairs(q: str = Query(default="")):
    return {"pairs": search_pairs(q)}
