"""Virtual balance ledger — pure math, no I/O.

The balance only moves when a position closes.  Unrealized P&L is
reported through ``equity()`` and never written into the balance.
"""

import math


class BalanceLedger:
    """Accumulates realized P&L on top of a seed balance.

    Args:
        initial_balance: Starting virtual balance (e.g. 10_000.0).
    """

    def __init__(self, initial_balance: float = 10_000.0) -> None:
        if not math.isfinite(initial_balance):
            raise ValueError(
                f"initial_balance must be finite, got {initial_balance}"
            )
        self._initial_balance: float = float(initial_balance)
        self._realized_total: float = 0.0
        self._close_count: int = 0

    # ── Mutation ─────────────────────────────────────────────────────────

    def apply_realized_pnl(self, amount: float) -> float:
        """Add *amount* to the balance and return the new balance.

        No clamping: the balance may go negative.
        """
        if not math.isfinite(amount):
            raise ValueError(f"realized P&L must be finite, got {amount}")
        self._realized_total += float(amount)
        self._close_count += 1
        return self.balance

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def initial_balance(self) -> float:
        return self._initial_balance

    @property
    def realized_total(self) -> float:
        """Sum of all realized P&L applied so far."""
        return self._realized_total

    @property
    def balance(self) -> float:
        """Seed balance plus realized P&L."""
        return self._initial_balance + self.realized_total

    @property
    def close_count(self) -> int:
        return self._close_count

    def equity(self, unrealized_pnl: float = 0.0) -> float:
        """Balance marked to market with the given open-position P&L."""
        return self.balance + unrealized_pnl
