"""CLI dashboard — prints demo session status to the console."""


def print_status(status: dict) -> str:
    """Format and print a session status snapshot.

    Args:
        status: Dict returned by ``DemoSession.status()``.

    Returns:
        The formatted string (also printed to stdout).
    """
    balance = status.get("balance")
    equity = status.get("equity")
    unrealized = status.get("unrealized_pnl")
    price = status.get("current_price")

    balance_str = f"${balance:,.2f}" if balance is not None else "N/A"
    equity_str = f"${equity:,.2f}" if equity is not None else "N/A"
    unrealized_str = f"${unrealized:+,.2f}" if unrealized is not None else "N/A"
    price_str = f"{price:,.5f}" if price is not None else "N/A"

    lines = [
        "──────────────── TradeDeck Session ───────────────",
        f"  Session:         {status.get('session', 'unknown')}",
        f"  Symbol:          {status.get('symbol', 'N/A')} ({status.get('feed_mode', 'N/A')})",
        f"  Paused:          {status.get('paused', False)}",
        f"  Price:           {price_str}",
        f"  Balance:         {balance_str}",
        f"  Unrealized P&L:  {unrealized_str}",
        f"  Equity:          {equity_str}",
        f"  Open Orders:     {status.get('open_orders', 0)}",
        f"  Pending Orders:  {status.get('pending_orders', 0)}",
        f"  Closed Trades:   {status.get('closed_trades', 0)}",
        f"  Ticks:           {status.get('tick_count', 0)}",
        "──────────────────────────────────────────────────",
    ]
    output = "\n".join(lines)
    print(output)
    return output
