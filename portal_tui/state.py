from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Union

from .api import Candle, TickerSnapshot
from .config import AppConfig, normalize_symbol, save_config

logger = logging.getLogger(__name__)

CANDLE_INTERVAL = "5m"
CANDLE_LIMIT = 100


class MarketDataFetcher(Protocol):
    def fetch_ticker(self, symbols: list[str]) -> dict[str, TickerSnapshot]: ...

    def fetch_candles(self, symbol: str, interval: str = ..., limit: int = ...) -> list[Candle]: ...


@dataclass(frozen=True)
class NormalMode:
    pass


@dataclass(frozen=True)
class AddingPairMode:
    buffer: str = ""


InputMode = Union[NormalMode, AddingPairMode]


@dataclass(frozen=True)
class SymbolView:
    """One table row. `ticker is None` means the pair is still loading."""

    symbol: str
    ticker: Optional[TickerSnapshot]
    selected: bool


@dataclass
class DashboardState:
    config: AppConfig
    fetcher: MarketDataFetcher
    config_path: str = ""
    clock: Callable[[], float] = time.monotonic
    tickers: dict[str, TickerSnapshot] = field(default_factory=dict)
    candles: dict[str, list[Candle]] = field(default_factory=dict)
    selected: Optional[str] = None
    mode: InputMode = field(default_factory=NormalMode)
    last_refresh: float = 0.0

    # ------------------------------------------------------------------
    # Tracked symbols
    # ------------------------------------------------------------------

    def get_all_symbols(self) -> list[str]:
        return self.config.trading_pairs.all_symbols()

    def add_custom_pair(self, symbol: str) -> bool:
        """
        Track a new pair. Rejected (False, nothing changes) when the symbol is
        invalid, already tracked, or the display capacity is used up.
        The pair shows as loading until the next refresh.
        """
        sym = normalize_symbol(symbol)
        if not sym:
            return False
        pairs = self.config.trading_pairs
        if sym in pairs.custom_pairs or sym in pairs.default_pairs:
            return False
        if len(self.get_all_symbols()) >= pairs.max_display_pairs:
            return False
        pairs.custom_pairs.append(sym)
        self._persist()
        return True

    def remove_custom_pair(self, symbol: str) -> bool:
        """Default pairs are not removable. Selection is left as-is."""
        sym = normalize_symbol(symbol)
        pairs = self.config.trading_pairs
        if not sym or sym not in pairs.custom_pairs:
            return False
        pairs.custom_pairs.remove(sym)
        self._persist()
        return True

    def save_config(self) -> bool:
        if not self.config_path:
            return False
        try:
            save_config(self.config_path, self.config)
        except OSError as exc:
            logger.error("saving config to %s failed: %s", self.config_path, exc)
            return False
        return True

    def _persist(self) -> None:
        # In-memory state stays authoritative when the write fails.
        if self.config_path:
            self.save_config()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_symbol(self, symbol: str) -> bool:
        if symbol not in self.get_all_symbols():
            return False
        self.selected = symbol
        return True

    def select_index(self, index: int) -> bool:
        syms = self.get_all_symbols()
        if index < 0 or index >= len(syms):
            return False
        self.selected = syms[index]
        return True

    def move_selection(self, delta: int) -> bool:
        """Step up (negative) or down (positive); clamps at both ends."""
        syms = self.get_all_symbols()
        if not syms:
            return False
        if self.selected not in syms:
            self.selected = syms[0]
            return True
        idx = syms.index(self.selected)
        target = max(0, min(len(syms) - 1, idx + int(delta)))
        if target == idx:
            return False
        self.selected = syms[target]
        return True

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    def ticker_for(self, symbol: Optional[str]) -> Optional[TickerSnapshot]:
        if not symbol or symbol not in self.get_all_symbols():
            return None
        return self.tickers.get(symbol)

    def candles_for(self, symbol: Optional[str]) -> Optional[list[Candle]]:
        if not symbol or symbol not in self.get_all_symbols():
            return None
        return self.candles.get(symbol)

    def rows(self) -> list[SymbolView]:
        return [
            SymbolView(symbol=sym, ticker=self.tickers.get(sym), selected=sym == self.selected)
            for sym in self.get_all_symbols()
        ]

    def should_refresh(self) -> bool:
        return (self.clock() - self.last_refresh) >= float(self.config.refresh_interval)

    def refresh(self) -> None:
        """
        Re-fetch tickers and candle windows for every tracked symbol.

        Requests run in parallel; nothing is written until all of them finished.
        Any FetchError propagates and leaves the cached generation untouched.
        """
        syms = self.get_all_symbols()
        new_tickers: dict[str, TickerSnapshot] = {}
        new_candles: dict[str, list[Candle]] = {}

        if syms:
            max_workers = min(8, len(syms) + 1)
            with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as ex:
                ticker_fut = ex.submit(self.fetcher.fetch_ticker, list(syms))
                candle_futs = {
                    sym: ex.submit(self.fetcher.fetch_candles, sym, CANDLE_INTERVAL, CANDLE_LIMIT) for sym in syms
                }
                # .result() re-raises the first failure; the executor still drains the rest on exit.
                new_tickers = ticker_fut.result()
                for sym, fut in candle_futs.items():
                    new_candles[sym] = fut.result()

        tickers = dict(self.tickers)
        tickers.update(new_tickers)
        candles = dict(self.candles)
        candles.update(new_candles)

        self.tickers = tickers
        self.candles = candles
        self.last_refresh = self.clock()
        logger.info("refreshed %d symbols (%d tickers)", len(syms), len(new_tickers))
