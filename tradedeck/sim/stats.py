"""Demo-trading statistics — pure functions over closed trades."""

from typing import Iterable, Optional

from tradedeck.sim.models import CloseEvent


def calculate_stats(events: Iterable[CloseEvent]) -> dict:
    """Summarise realized results.

    Returns:
        Dict with ``total_trades``, ``winning_trades``, ``losing_trades``,
        ``win_rate``, ``profit_factor``, ``max_drawdown``, ``net_pnl``,
        ``stop_loss_exits`` and ``take_profit_exits``.
    """
    trades = list(events)
    if not trades:
        return {
            "total_trades": 0,
            "winning_trades": 0,
            "losing_trades": 0,
            "win_rate": 0.0,
            "profit_factor": None,
            "max_drawdown": 0.0,
            "net_pnl": 0.0,
            "stop_loss_exits": 0,
            "take_profit_exits": 0,
        }

    pnls = [e.realized_pnl for e in trades]
    total = len(pnls)
    winners = [p for p in pnls if p > 0]
    losers = [p for p in pnls if p <= 0]

    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    profit_factor: Optional[float] = (
        gross_profit / gross_loss if gross_loss > 0 else None
    )

    return {
        "total_trades": total,
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": round(len(winners) / total, 4),
        "profit_factor": round(profit_factor, 4) if profit_factor is not None else None,
        "max_drawdown": round(_max_drawdown(pnls), 2),
        "net_pnl": round(sum(pnls), 2),
        "stop_loss_exits": sum(1 for e in trades if e.reason == "stop_loss"),
        "take_profit_exits": sum(1 for e in trades if e.reason == "take_profit"),
    }


# ── Helpers ──────────────────────────────────────────────────────────────


def _max_drawdown(pnls: list[float]) -> float:
    """Maximum drawdown from the cumulative P&L curve.

    Returns the largest peak-to-trough decline as a positive number.
    """
    cumulative = 0.0
    peak = 0.0
    max_dd = 0.0
    for p in pnls:
        cumulative += p
        if cumulative > peak:
            peak = cumulative
        dd = peak - cumulative
        if dd > max_dd:
            max_dd = dd
    return max_dd
