from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .api import Candle, TickerSnapshot, to_float


class Glyph(enum.Enum):
    WICK = "│"
    BODY = "█"


class Tone(enum.Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class ChartCell:
    # Plot-area coordinates: (0, 0) is the top-left cell inside the border.
    column: int
    row: int
    glyph: Glyph
    tone: Tone


def tone_for(open_price: float, close_price: float) -> Tone:
    return Tone.UP if close_price >= open_price else Tone.DOWN


def change_tone(ticker: Optional[TickerSnapshot]) -> Tone:
    if ticker is None:
        return Tone.UP
    return Tone.UP if to_float(ticker.price_change) >= 0 else Tone.DOWN


def _row_mapper(max_price: float, price_range: float, plot_height: int):
    last = plot_height - 1

    if price_range <= 0:
        center = plot_height // 2

        def flat(_v: float) -> int:
            return center

        return flat

    def to_row(v: float) -> int:
        y = math.floor((max_price - v) / price_range * plot_height)
        return max(0, min(last, y))

    return to_row


def layout_candles(candles: Sequence[Candle], width: int, height: int) -> list[ChartCell]:
    """
    Map a candle window onto a width x height box (border included).

    The plot area is (width - 2) x (height - 2). Candle i lands on column
    floor(i / N * plot_width); prices scale linearly between the window's
    lowest low (last row) and highest high (row 0). For each candle the wick
    cells come first and the body cells after, so a renderer that paints in
    order shows the body on top. Several candles can share a column when
    N > plot_width; the later one wins.
    """
    plot_width = int(width) - 2
    plot_height = int(height) - 2
    if not candles or plot_width <= 0 or plot_height <= 0:
        return []

    lows = [to_float(c.low) for c in candles]
    highs = [to_float(c.high) for c in candles]
    min_price = min(lows)
    max_price = max(highs)
    to_row = _row_mapper(max_price, max_price - min_price, plot_height)

    n = len(candles)
    cells: list[ChartCell] = []
    for i, c in enumerate(candles):
        x = math.floor(i / n * plot_width)
        o = to_float(c.open)
        cl = to_float(c.close)
        tone = tone_for(o, cl)

        high_y = to_row(highs[i])
        low_y = to_row(lows[i])
        for y in range(min(high_y, low_y), max(high_y, low_y) + 1):
            cells.append(ChartCell(column=x, row=y, glyph=Glyph.WICK, tone=tone))

        open_y = to_row(o)
        close_y = to_row(cl)
        for y in range(min(open_y, close_y), max(open_y, close_y) + 1):
            cells.append(ChartCell(column=x, row=y, glyph=Glyph.BODY, tone=tone))
    return cells


def rasterize(cells: Sequence[ChartCell]) -> dict[tuple[int, int], ChartCell]:
    """Collapse a cell list into {(column, row): cell}; later cells overwrite earlier ones."""
    grid: dict[tuple[int, int], ChartCell] = {}
    for cell in cells:
        grid[(cell.column, cell.row)] = cell
    return grid
