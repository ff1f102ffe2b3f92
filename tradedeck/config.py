"""TradeDeck — application configuration.

Loads .env variables into a typed config object.
Validates values on startup.
"""

import math
import os
from dataclasses import dataclass

from dotenv import load_dotenv


FEED_MODES = ("synthetic", "live")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    symbol: str
    feed_mode: str  # "synthetic" or "live"
    tick_interval_seconds: float
    initial_balance: float
    contract_multiplier: float
    start_price: float
    volatility: float
    wick_factor: float
    history_candles: int
    kline_interval: str
    activate_pending_orders: bool
    binance_base_url: str
    db_path: str
    log_level: str
    api_port: int

    @property
    def is_live(self) -> bool:
        """Return ``True`` when ticks come from the market-data provider."""
        return self.feed_mode == "live"


def _float_var(name: str, default: str, allow_zero: bool = False) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got '{raw}'")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _int_var(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    feed_mode = os.environ.get("FEED_MODE", "synthetic").lower()
    if feed_mode not in FEED_MODES:
        raise ValueError(
            f"FEED_MODE must be one of {', '.join(FEED_MODES)}, got '{feed_mode}'"
        )

    return Config(
        symbol=os.environ.get("TRADEDECK_SYMBOL", "BTC").upper(),
        feed_mode=feed_mode,
        tick_interval_seconds=_float_var("TICK_INTERVAL_SECONDS", "1.0"),
        initial_balance=_float_var("INITIAL_BALANCE", "10000"),
        contract_multiplier=_float_var("CONTRACT_MULTIPLIER", "100"),
        start_price=_float_var("START_PRICE", "100"),
        volatility=_float_var("VOLATILITY", "1.0"),
        wick_factor=_float_var("WICK_FACTOR", "0.5", allow_zero=True),
        history_candles=_int_var("HISTORY_CANDLES", "100"),
        kline_interval=os.environ.get("KLINE_INTERVAL", "1s"),
        activate_pending_orders=(
            os.environ.get("ACTIVATE_PENDING_ORDERS", "false").lower() in _TRUTHY
        ),
        binance_base_url=os.environ.get(
            "BINANCE_BASE_URL", "https://api.binance.com"
        ).rstrip("/"),
        db_path=os.environ.get("DB_PATH", "data/tradedeck.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_int_var("API_PORT", "8080"),
    )
