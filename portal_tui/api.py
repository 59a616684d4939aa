from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

import requests

from .runtime.errors import FetchError

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": "binance-portal-tui",
    "Accept": "application/json",
}


@dataclass(frozen=True)
class TickerSnapshot:
    # Decimal text exactly as the exchange sent it; parse only for display.
    symbol: str
    price: str
    price_change: str
    price_change_percent: str
    volume: str
    high_24h: str
    low_24h: str


@dataclass(frozen=True)
class Candle:
    open_time: int  # unix ms
    open: str
    high: str
    low: str
    close: str
    volume: str
    close_time: int  # unix ms


def to_float(raw: object) -> float:
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _text(raw: object) -> str:
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return str(raw)
    return "0"


def _int(raw: object) -> int:
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw))
    except (TypeError, ValueError):
        return 0


def parse_ticker(symbol: str, row: dict) -> TickerSnapshot:
    return TickerSnapshot(
        symbol=symbol,
        price=_text(row.get("lastPrice")),
        price_change=_text(row.get("priceChange")),
        price_change_percent=_text(row.get("priceChangePercent")),
        volume=_text(row.get("volume")),
        high_24h=_text(row.get("highPrice")),
        low_24h=_text(row.get("lowPrice")),
    )


def parse_kline(row: object) -> Optional[Candle]:
    """
    Binance kline row:
      [open_time, open, high, low, close, volume, close_time, quote_volume, ...]
    Rows shorter than 7 fields are dropped.
    """
    if not isinstance(row, list) or len(row) < 7:
        return None
    return Candle(
        open_time=_int(row[0]),
        open=_text(row[1]),
        high=_text(row[2]),
        low=_text(row[3]),
        close=_text(row[4]),
        volume=_text(row[5]),
        close_time=_int(row[6]),
    )


class BinanceClient:
    """
    Public (no API key) spot market data.

    Endpoints:
      {base}/api/v3/ticker/24hr?symbol=BTCUSDT
      {base}/api/v3/klines?symbol=BTCUSDT&interval=5m&limit=100
    """

    def __init__(self, base_url: str = "https://api.binance.com", timeout_s: float = 10.0,
                 session: requests.Session | None = None) -> None:
        self._base_url = (base_url or "https://api.binance.com").rstrip("/")
        self._timeout_s = max(1.0, float(timeout_s))
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get(self, path: str, params: dict) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            return self._session.get(url, params=params, headers=_HEADERS, timeout=self._timeout_s)
        except requests.RequestException as exc:
            raise FetchError(f"GET {path} failed: {exc}", path=path, symbol=str(params.get("symbol", ""))) from exc

    @staticmethod
    def _json(resp: requests.Response, path: str) -> object:
        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(f"GET {path} returned a malformed body", path=path, status=resp.status_code) from exc

    def fetch_ticker(self, symbols: Iterable[str]) -> dict[str, TickerSnapshot]:
        """
        24h ticker per symbol. A symbol whose request is rejected (non-2xx, e.g.
        an unknown pair) is left out of the result rather than failing the batch.
        """
        out: dict[str, TickerSnapshot] = {}
        path = "/api/v3/ticker/24hr"
        for symbol in symbols:
            resp = self._get(path, {"symbol": symbol})
            if not resp.ok:
                logger.debug("ticker %s rejected: HTTP %s", symbol, resp.status_code)
                continue
            row = self._json(resp, path)
            if not isinstance(row, dict):
                raise FetchError(f"GET {path} returned {type(row).__name__}, expected object", path=path, symbol=symbol)
            out[symbol] = parse_ticker(symbol, row)
        return out

    def fetch_candles(self, symbol: str, interval: str = "5m", limit: int = 100) -> list[Candle]:
        path = "/api/v3/klines"
        resp = self._get(path, {"symbol": symbol, "interval": interval, "limit": int(limit)})
        rows = self._json(resp, path)
        if not isinstance(rows, list):
            raise FetchError(
                f"GET {path} returned {type(rows).__name__}, expected array",
                path=path,
                symbol=symbol,
                status=resp.status_code,
            )
        candles: list[Candle] = []
        for row in rows:
            candle = parse_kline(row)
            if candle is None:
                continue
            candles.append(candle)
        return candles

    def close(self) -> None:
        self._session.close()
