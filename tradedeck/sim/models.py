"""Simulation data models — virtual orders and close events."""

from dataclasses import asdict, dataclass
from typing import Literal, Optional

Side = Literal["buy", "sell"]
OrderKind = Literal["market", "limit", "buy_stop", "sell_stop"]
OrderStatus = Literal["open", "pending"]
CloseReason = Literal["stop_loss", "take_profit", "manual"]

SIDES = ("buy", "sell")
ORDER_KINDS = ("market", "limit", "buy_stop", "sell_stop")


@dataclass
class Order:
    """A virtual order held by the order book.

    ``entry_price`` is the fill price for open orders and the trigger
    price for pending ones.
    """

    order_id: str
    side: Side
    kind: OrderKind
    entry_price: float
    quantity: float
    status: OrderStatus
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    opened_at: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CloseEvent:
    """Emitted once for every order that leaves the book."""

    order_id: str
    side: Side
    kind: OrderKind
    entry_price: float
    exit_price: float
    quantity: float
    realized_pnl: float
    reason: CloseReason
    closed_at: int
    balance_after: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)
