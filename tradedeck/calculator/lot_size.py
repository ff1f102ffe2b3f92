"""Lot-size calculator — pure math, no I/O.

Sizes a position so that hitting the stop-loss loses a fixed share of
the account balance.
"""

import math
from dataclasses import dataclass

# Value of one pip per standard lot, in the quote currency
PIP_VALUES: dict[str, float] = {
    # Major pairs
    "EUR/USD": 10.0,
    "GBP/USD": 10.0,
    "USD/JPY": 9.09,
    "USD/CHF": 10.75,
    "AUD/USD": 10.0,
    "NZD/USD": 10.0,
    "USD/CAD": 7.58,
    # Cross pairs
    "EUR/GBP": 12.74,
    "EUR/JPY": 9.09,
    "GBP/JPY": 9.09,
    "EUR/CHF": 10.75,
    "GBP/CHF": 10.75,
    "AUD/JPY": 9.09,
    "CHF/JPY": 9.09,
    # Exotic pairs
    "EUR/AUD": 6.37,
    "GBP/AUD": 6.37,
    "USD/SGD": 7.38,
    "USD/HKD": 1.28,
    # Crypto
    "BTC/USD": 10.0,
    "ETH/USD": 10.0,
    # Commodities
    "XAU/USD": 10.0,
    "XAG/USD": 10.0,
}

DEFAULT_PIP_VALUE = 10.0


@dataclass(frozen=True)
class LotSizeResult:
    """Computed position size for one trade."""

    lot_size: float
    risk_amount: float
    pip_value: float


def calculate_lot_size(
    balance: float,
    risk_pct: float,
    stop_loss_pips: float,
    pair: str = "EUR/USD",
) -> LotSizeResult:
    """Calculate position size in standard lots.

    Formula::

        risk_amount = balance × (risk_pct / 100)
        lot_size    = risk_amount / (stop_loss_pips × pip_value)

    Args:
        balance: Account balance (e.g. 10_000.0).
        risk_pct: Percentage of balance to risk (e.g. 1.0 for 1 %).
        stop_loss_pips: Stop-loss distance in pips (e.g. 50).
        pair: Instrument, e.g. ``"EUR/USD"``.  Unknown pairs use a pip
            value of 10.

    Returns:
        ``LotSizeResult`` with lot size and risk amount rounded to cents.

    Raises:
        ValueError: If any input is non-positive or not finite.
    """
    for name, value in (
        ("balance", balance),
        ("risk_pct", risk_pct),
        ("stop_loss_pips", stop_loss_pips),
    ):
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")

    pip_value = PIP_VALUES.get(pair.upper(), DEFAULT_PIP_VALUE)
    risk_amount = balance * (risk_pct / 100.0)
    lot_size = risk_amount / (stop_loss_pips * pip_value)
    return LotSizeResult(
        lot_size=round(lot_size, 2),
        risk_amount=round(risk_amount, 2),
        pip_value=pip_value,
    )


def search_pairs(query: str = "") -> list[str]:
    """Return known pairs containing *query* (case-insensitive)."""
    q = query.strip().upper()
    return [p for p in PIP_VALUES if q in p]
