"""Virtual order book — order lifecycle and SL/TP evaluation, no I/O.

Owns the set of open and pending demo orders.  Each tick is checked
against every open order's stop-loss and take-profit; a crossed level
closes the order at the level itself, not at the tick close.  When both
levels are crossed by the same tick, the stop-loss wins (conservative).
"""

import logging
import math
from typing import Optional

from tradedeck.market.models import PriceTick
from tradedeck.sim.errors import (
    InvalidOrderError,
    InvalidQuantityError,
    OrderNotFoundError,
)
from tradedeck.sim.models import ORDER_KINDS, SIDES, CloseEvent, Order

logger = logging.getLogger("tradedeck.orders")


def calculate_pnl(
    side: str,
    entry_price: float,
    exit_price: float,
    quantity: float,
    multiplier: float,
) -> float:
    """P&L of a position exiting at *exit_price*.

    Formula::

        buy  = (exit - entry) × quantity × multiplier
        sell = (entry - exit) × quantity × multiplier
    """
    if side == "buy":
        return (exit_price - entry_price) * quantity * multiplier
    return (entry_price - exit_price) * quantity * multiplier


def _is_positive_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


class OrderBook:
    """In-memory book of demo orders.

    Args:
        contract_multiplier: Currency value of a one-point move for one
            unit of quantity (default 100).
        activate_pending: When ``True``, pending limit / stop orders open
            once a tick crosses their entry price.  When ``False`` they stay
            pending until closed manually.
    """

    def __init__(
        self,
        contract_multiplier: float = 100.0,
        activate_pending: bool = False,
    ) -> None:
        if not _is_positive_number(contract_multiplier):
            raise ValueError(
                f"contract_multiplier must be positive, got {contract_multiplier}"
            )
        self._multiplier = float(contract_multiplier)
        self._activate_pending = activate_pending
        self._orders: dict[str, Order] = {}
        self._next_id = 1

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def contract_multiplier(self) -> float:
        return self._multiplier

    @property
    def orders(self) -> list[Order]:
        """All orders in placement order."""
        return list(self._orders.values())

    @property
    def open_orders(self) -> list[Order]:
        return [o for o in self._orders.values() if o.status == "open"]

    @property
    def pending_orders(self) -> list[Order]:
        return [o for o in self._orders.values() if o.status == "pending"]

    def get(self, order_id: str) -> Order:
        """Return the order with *order_id*.

        Raises ``OrderNotFoundError`` if it is not in the book.
        """
        try:
            return self._orders[order_id]
        except KeyError:
            raise OrderNotFoundError(f"Unknown order: {order_id}") from None

    def __len__(self) -> int:
        return len(self._orders)

    def unrealized_pnl_for(self, order: Order, price: float) -> float:
        """P&L a manual close of *order* at *price* would realize."""
        return calculate_pnl(
            order.side, order.entry_price, price, order.quantity, self._multiplier,
        )

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market P&L of all open orders at *price*."""
        return sum(self.unrealized_pnl_for(o, price) for o in self.open_orders)

    # ── Placement ────────────────────────────────────────────────────────

    def place_order(
        self,
        side: str,
        kind: str,
        quantity: float,
        current_price: float,
        entry_price: Optional[float] = None,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
        opened_at: Optional[int] = None,
    ) -> Order:
        """Validate and add a new order.

        Market orders open immediately at *current_price*.  Limit and stop
        orders start ``pending`` at *entry_price*, or at *current_price*
        when no entry price is given.

        Raises:
            InvalidQuantityError: *quantity* is not a positive finite number.
            InvalidOrderError: Unknown side or kind, a stop kind that
                contradicts the side, or a non-positive price.
        """
        if not _is_positive_number(quantity):
            raise InvalidQuantityError(
                f"quantity must be a positive number, got {quantity!r}"
            )
        if side not in SIDES:
            raise InvalidOrderError(f"side must be 'buy' or 'sell', got '{side}'")
        if kind not in ORDER_KINDS:
            raise InvalidOrderError(
                f"kind must be one of {', '.join(ORDER_KINDS)}, got '{kind}'"
            )
        if kind in ("buy_stop", "sell_stop") and not kind.startswith(side):
            raise InvalidOrderError(f"a {kind} order cannot be a {side} order")
        if not _is_positive_number(current_price):
            raise InvalidOrderError(
                f"current_price must be positive, got {current_price!r}"
            )
        for name, value in (
            ("entry_price", entry_price),
            ("stop_loss", stop_loss),
            ("take_profit", take_profit),
        ):
            if value is not None and not _is_positive_number(value):
                raise InvalidOrderError(f"{name} must be positive, got {value!r}")

        if kind == "market":
            price = current_price
            status = "open"
        else:
            price = entry_price if entry_price is not None else current_price
            status = "pending"

        order = Order(
            order_id=str(self._next_id),
            side=side,
            kind=kind,
            entry_price=float(price),
            quantity=float(quantity),
            status=status,
            stop_loss=stop_loss,
            take_profit=take_profit,
            opened_at=opened_at,
        )
        self._next_id += 1
        self._orders[order.order_id] = order
        logger.info(
            "Placed %s %s order %s: %.4g @ %.5f (SL=%s TP=%s, %s)",
            side.upper(), kind, order.order_id, order.quantity,
            order.entry_price, stop_loss, take_profit, status,
        )
        return order

    # ── Closing ──────────────────────────────────────────────────────────

    def close_order(
        self,
        order_id: str,
        exit_price: float,
        reason: str = "manual",
        closed_at: int = 0,
    ) -> CloseEvent:
        """Remove an order and return its close event.

        Every order realizes ``calculate_pnl`` at *exit_price* against its
        entry price, pending orders included.

        Raises:
            OrderNotFoundError: *order_id* is not in the book.
            InvalidOrderError: *exit_price* is not a positive number.
        """
        order = self.get(order_id)
        if not _is_positive_number(exit_price):
            raise InvalidOrderError(f"exit_price must be positive, got {exit_price!r}")

        pnl = calculate_pnl(
            order.side, order.entry_price, exit_price,
            order.quantity, self._multiplier,
        )

        del self._orders[order_id]
        logger.info(
            "Closed order %s (%s) at %.5f: P&L %.2f",
            order_id, reason, exit_price, pnl,
        )
        return CloseEvent(
            order_id=order.order_id,
            side=order.side,
            kind=order.kind,
            entry_price=order.entry_price,
            exit_price=float(exit_price),
            quantity=order.quantity,
            realized_pnl=pnl,
            reason=reason,
            closed_at=closed_at,
        )

    # ── Tick evaluation ──────────────────────────────────────────────────

    def on_tick(self, tick: PriceTick) -> list[CloseEvent]:
        """Evaluate every open order against *tick* and close the triggered ones.

        Returns the close events in placement order.
        """
        activated: set[str] = set()
        if self._activate_pending:
            activated = self._activate(tick)

        closes: list[CloseEvent] = []
        for order in self.open_orders:
            if order.order_id in activated:
                continue
            hit = self._check_exit(order, tick.close)
            if hit is None:
                continue
            exit_price, reason = hit
            closes.append(
                self.close_order(
                    order.order_id, exit_price, reason, closed_at=tick.timestamp,
                )
            )
        return closes

    @staticmethod
    def _check_exit(order: Order, price: float) -> Optional[tuple[float, str]]:
        """Return ``(trigger_price, reason)`` if *price* crosses SL or TP.

        Stop-loss is checked first so it takes precedence over take-profit.
        """
        sl = order.stop_loss
        tp = order.take_profit

        if order.side == "buy":
            sl_hit = sl is not None and price <= sl
            tp_hit = tp is not None and price >= tp
        else:
            sl_hit = sl is not None and price >= sl
            tp_hit = tp is not None and price <= tp

        if sl_hit:
            return sl, "stop_loss"
        if tp_hit:
            return tp, "take_profit"
        return None

    def _activate(self, tick: PriceTick) -> set[str]:
        """Open pending orders whose entry price *tick* has crossed."""
        activated: set[str] = set()
        price = tick.close
        for order in self.pending_orders:
            entry = order.entry_price
            if order.kind == "limit":
                crossed = price <= entry if order.side == "buy" else price >= entry
            elif order.kind == "buy_stop":
                crossed = price >= entry
            else:  # sell_stop
                crossed = price <= entry
            if crossed:
                order.status = "open"
                order.opened_at = tick.timestamp
                activated.add(order.order_id)
                logger.info(
                    "Activated %s order %s at %.5f", order.kind, order.order_id, entry,
                )
        return activated
