"""Pytest configuration for portal_tui tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root is importable (portal_tui/...).
_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_ROOT))

from portal_tui.api import Candle, TickerSnapshot  # noqa: E402
from portal_tui.config import AppConfig  # noqa: E402
from portal_tui.runtime.errors import FetchError  # noqa: E402
from portal_tui.state import DashboardState  # noqa: E402


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, raw_text: str | None = None) -> None:
        self._payload = payload
        self.status_code = status_code
        self._raw_text = raw_text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self):
        if self._raw_text is not None:
            raise ValueError(f"not json: {self._raw_text!r}")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes by URL path and `symbol` param."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], object] = {}
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def add(self, path: str, symbol: str, response) -> None:
        self.routes[(path, symbol)] = response

    def get(self, url, params=None, headers=None, timeout=None):
        params = dict(params or {})
        self.calls.append((url, params))
        path = "/" + url.split("/", 3)[-1]
        resp = self.routes.get((path, params.get("symbol", "")))
        if isinstance(resp, Exception):
            raise resp
        if resp is None:
            return FakeResponse({"code": -1121, "msg": "Invalid symbol."}, status_code=400)
        return resp

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_ticker(symbol: str, price: str = "100.0", change: str = "1.5") -> TickerSnapshot:
    return TickerSnapshot(
        symbol=symbol,
        price=price,
        price_change=change,
        price_change_percent="1.52",
        volume="1234.5",
        high_24h="110.0",
        low_24h="90.0",
    )


def make_candle(o: str, h: str, l: str, c: str, t: int = 0) -> Candle:
    return Candle(open_time=t, open=o, high=h, low=l, close=c, volume="1", close_time=t + 299_999)


class FakeFetcher:
    """In-memory market data source.

    `fail` makes every call raise FetchError; `fail_candles` fails only the
    candle fetch of the listed symbols.
    """

    def __init__(self) -> None:
        self.fail = False
        self.ticker_calls: list[list[str]] = []
        self.candle_calls: list[str] = []
        self.omit: set[str] = set()
        self.fail_candles: set[str] = set()
        self.price = "100.0"

    def fetch_ticker(self, symbols):
        syms = list(symbols)
        self.ticker_calls.append(syms)
        if self.fail:
            raise FetchError("network down")
        return {s: make_ticker(s, price=self.price) for s in syms if s not in self.omit}

    def fetch_candles(self, symbol, interval="5m", limit=100):
        self.candle_calls.append(symbol)
        if self.fail or symbol in self.fail_candles:
            raise FetchError("network down", symbol=symbol)
        return [make_candle("100", "115", "95", "110", t=i * 300_000) for i in range(3)]


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def state(fetcher, clock, tmp_path) -> DashboardState:
    return DashboardState(
        config=AppConfig(),
        fetcher=fetcher,
        config_path=str(tmp_path / "config.json"),
        clock=clock,
    )
