"""Binance public REST API async client.

Fetches klines and 24h tickers and maps them into typed models.
Untyped payloads never leave this module.
"""

import asyncio
import logging
from typing import Optional

import httpx

from tradedeck.config import Config
from tradedeck.market.models import PriceTick, Ticker, validate_tick
from tradedeck.sim.errors import MarketDataError

logger = logging.getLogger("tradedeck.market")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

QUOTE_ASSET = "USDT"


def pair_for(symbol: str) -> str:
    """Return the Binance trading pair for a base asset, e.g. ``BTCUSDT``."""
    symbol = symbol.upper()
    if symbol.endswith(QUOTE_ASSET):
        return symbol
    return f"{symbol}{QUOTE_ASSET}"


def parse_kline(row: list) -> PriceTick:
    """Map one Binance kline array into a validated ``PriceTick``.

    Binance rows are ``[open_time_ms, open, high, low, close, volume, ...]``
    with prices encoded as strings.
    """
    try:
        tick = PriceTick(
            timestamp=int(row[0]) // 1000,
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )
    except (IndexError, TypeError, ValueError) as exc:
        raise MarketDataError(f"Malformed kline row {row!r}: {exc}") from exc
    try:
        return validate_tick(tick)
    except ValueError as exc:
        raise MarketDataError(f"Invalid kline: {exc}") from exc


class BinanceClient:
    """Async client wrapping the public Binance market-data endpoints."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.binance_base_url
        self._headers = {"Accept": "application/json"}

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately: a Binance
        ``{"code", "msg"}`` body as ``MarketDataError``, anything else as
        ``httpx.HTTPStatusError``.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        timeout=10.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d, retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                if resp.is_client_error:
                    self._raise_api_error(resp)
                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s), retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    @staticmethod
    def _raise_api_error(resp: httpx.Response) -> None:
        """Raise ``MarketDataError`` if *resp* carries a Binance error body."""
        try:
            data = resp.json()
        except ValueError:
            return
        if isinstance(data, dict) and "code" in data:
            raise MarketDataError(
                f"Binance error {data['code']} (HTTP {resp.status_code}): "
                f"{data.get('msg') or 'no message'}"
            )

    @staticmethod
    def _json(resp: httpx.Response):
        """Decode a response body, surfacing Binance error payloads."""
        try:
            data = resp.json()
        except ValueError as exc:
            raise MarketDataError(f"Non-JSON response from Binance: {exc}") from exc
        if isinstance(data, dict) and "code" in data:
            raise MarketDataError(data.get("msg") or f"Binance error {data['code']}")
        return data

    # ── Klines ───────────────────────────────────────────────────────────

    async def fetch_klines(
        self,
        symbol: str,
        interval: str = "1m",
        limit: int = 100,
    ) -> list[PriceTick]:
        """Fetch candlestick data.

        Args:
            symbol: Base asset, e.g. ``"BTC"`` (quoted in USDT).
            interval: Binance interval, e.g. ``"1s"``, ``"1m"``, ``"1h"``.
            limit: Number of klines to request (max 1000).

        Returns:
            List of ``PriceTick`` ordered oldest-first.
        """
        url = f"{self._base_url}/api/v3/klines"
        params = {
            "symbol": pair_for(symbol),
            "interval": interval,
            "limit": limit,
        }

        resp = await self._request_with_retry("get", url, params=params)

        data = self._json(resp)
        if not isinstance(data, list):
            raise MarketDataError(f"Unexpected klines payload: {type(data).__name__}")
        return [parse_kline(row) for row in data]

    # ── Ticker ───────────────────────────────────────────────────────────

    async def get_ticker(self, symbol: str) -> Ticker:
        """Query the 24h rolling ticker for *symbol*."""
        url = f"{self._base_url}/api/v3/ticker/24hr"

        resp = await self._request_with_retry(
            "get", url, params={"symbol": pair_for(symbol)},
        )

        t = self._json(resp)
        try:
            return Ticker(
                symbol=symbol.upper(),
                price=float(t["lastPrice"]),
                change=float(t["priceChange"]),
                change_percent=float(t["priceChangePercent"]),
                high=float(t["highPrice"]),
                low=float(t["lowPrice"]),
                volume=float(t["volume"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MarketDataError(f"Malformed ticker payload: {exc}") from exc
