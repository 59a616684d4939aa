from __future__ import annotations

import curses
import locale
import logging
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .api import Candle, TickerSnapshot, to_float
from .chart import Glyph, Tone, change_tone, layout_candles, rasterize
from .config import ThemeConfig
from .keys import InputRouter
from .runtime.errors import FetchError
from .state import AddingPairMode, DashboardState

logger = logging.getLogger(__name__)

LEFT_RATIO = 0.40
INPUT_BOX_H = 3
INFO_BOX_H = 3

_FOOTER = "q quit | r refresh | 1-9 select | a add | d delete | s save | ↑↓ move"
_FOOTER_ASCII = "q quit | r refresh | 1-9 select | a add | d delete | s save | up/down move"

# Curses base colours and their RGB, for mapping theme hex strings.
_BASE_COLORS = (
    (curses.COLOR_BLACK, (0, 0, 0)),
    (curses.COLOR_RED, (255, 0, 0)),
    (curses.COLOR_GREEN, (0, 255, 0)),
    (curses.COLOR_YELLOW, (255, 255, 0)),
    (curses.COLOR_BLUE, (0, 0, 255)),
    (curses.COLOR_MAGENTA, (255, 0, 255)),
    (curses.COLOR_CYAN, (0, 255, 255)),
    (curses.COLOR_WHITE, (255, 255, 255)),
)


@dataclass
class StatusLine:
    text: str = ""
    is_error: bool = False


def _hex_to_rgb(raw: str) -> tuple[int, int, int]:
    t = (raw or "").lstrip("#")
    try:
        return int(t[0:2], 16), int(t[2:4], 16), int(t[4:6], 16)
    except (ValueError, IndexError):
        return 255, 255, 255


def nearest_curses_color(raw: str) -> int:
    r, g, b = _hex_to_rgb(raw)
    best = curses.COLOR_WHITE
    best_d = None
    for color, (cr, cg, cb) in _BASE_COLORS:
        d = (r - cr) ** 2 + (g - cg) ** 2 + (b - cb) ** 2
        if best_d is None or d < best_d:
            best, best_d = color, d
    return best


def _init_colors(theme: ThemeConfig) -> dict[str, int]:
    if not curses.has_colors():
        return {}
    curses.start_color()
    try:
        curses.use_default_colors()
    except curses.error:
        pass

    bg = nearest_curses_color(theme.background)
    # Pair IDs must be 1..; keep small and stable.
    curses.init_pair(1, nearest_curses_color(theme.primary), bg)    # accent / borders
    curses.init_pair(2, nearest_curses_color(theme.secondary), bg)  # loading / notices
    curses.init_pair(3, nearest_curses_color(theme.text), bg)       # plain text
    curses.init_pair(4, curses.COLOR_GREEN, bg)                     # up
    curses.init_pair(5, curses.COLOR_RED, bg)                       # down
    return {"PRIMARY": 1, "SECONDARY": 2, "TEXT": 3, "UP": 4, "DOWN": 5}


def _attr(colors: dict[str, int], name: str, extra: int = 0) -> int:
    return curses.color_pair(colors.get(name, 0)) | extra


def _tone_attr(colors: dict[str, int], tone: Tone) -> int:
    return _attr(colors, "UP" if tone is Tone.UP else "DOWN")


def _utf_terminal() -> bool:
    return "utf" in (locale.getpreferredencoding(False) or "").lower()


def _line_chars() -> tuple[str, str, str, str, str, str]:
    # Avoid ncurses ACS fallback glyphs (q/x/l/m/...) on some terminals.
    if _utf_terminal():
        return ("│", "─", "┌", "┐", "└", "┘")
    return ("|", "-", "+", "+", "+", "+")


def _glyph_char(glyph: Glyph) -> str:
    if _utf_terminal():
        return glyph.value
    return "|" if glyph is Glyph.WICK else "#"


def _safe_addstr(win, y: int, x: int, s: str, attr: int = 0) -> None:
    try:
        win.addstr(y, x, s, attr)
    except curses.error:
        # Writing the bottom-right cell or past the edge raises; clip silently.
        pass


def _draw_box(win, x: int, y: int, width: int, height: int, attr: int = 0, title: str = "") -> None:
    if width < 2 or height < 2:
        return
    vline, hline, tl, tr, bl, br = _line_chars()
    right = x + width - 1
    bottom = y + height - 1

    _safe_addstr(win, y, x + 1, hline * (width - 2), attr)
    _safe_addstr(win, bottom, x + 1, hline * (width - 2), attr)
    for i in range(1, height - 1):
        _safe_addstr(win, y + i, x, vline, attr)
        _safe_addstr(win, y + i, right, vline, attr)
    _safe_addstr(win, y, x, tl, attr)
    _safe_addstr(win, y, right, tr, attr)
    _safe_addstr(win, bottom, x, bl, attr)
    _safe_addstr(win, bottom, right, br, attr)

    if title and width > 4:
        _safe_addstr(win, y, x + 1, _truncate(f" {title} ", width - 2), attr | curses.A_BOLD)


def _char_display_width(ch: str) -> int:
    if not ch:
        return 0
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"F", "W"}:
        return 2
    return 1


def _text_display_width(text: str) -> int:
    return sum(_char_display_width(ch) for ch in (text or ""))


def _truncate(s: str, width: int) -> str:
    if width <= 0:
        return ""
    text = str(s or "")
    if _text_display_width(text) <= width:
        return text
    if width == 1:
        return ">"

    budget = width - 1
    used = 0
    out: list[str] = []
    for ch in text:
        w = _char_display_width(ch)
        if used + w > budget:
            break
        out.append(ch)
        used += w
    return "".join(out) + ">"


def _fit_cell(text: str, width: int, *, align: str = "left") -> str:
    if width <= 0:
        return ""
    clipped = _truncate(text, width)
    pad = max(0, width - _text_display_width(clipped))
    if align == "right":
        return (" " * pad) + clipped
    return clipped + (" " * pad)


def _fmt_price(raw: str) -> str:
    v = to_float(raw)
    if v >= 1000:
        return f"{v:,.2f}"
    if v >= 1:
        return f"{v:.4f}"
    return f"{v:.6f}"


def _fmt_pct(raw: str) -> str:
    return f"{to_float(raw):+.2f}%"


def format_table_row(symbol: str, ticker: Optional[TickerSnapshot], width: int) -> str:
    """`SYMBOL  +1.23%  43,210.50` laid out to `width`; loading rows say so."""
    sym_w = 10
    pct_w = 9
    price_w = max(0, width - sym_w - pct_w - 2)
    if ticker is None:
        return _fit_cell(f"{_fit_cell(symbol, sym_w)} loading...", width)
    line = (
        _fit_cell(symbol, sym_w)
        + " "
        + _fit_cell(_fmt_pct(ticker.price_change_percent), pct_w, align="right")
        + " "
        + _fit_cell(_fmt_price(ticker.price), price_w, align="right")
    )
    return _fit_cell(line, width)


def format_info_line(symbol: Optional[str], ticker: Optional[TickerSnapshot]) -> str:
    if not symbol:
        return "No pair selected"
    if ticker is None:
        return f"{symbol}  loading..."
    return (
        f"{symbol}  {_fmt_price(ticker.price)}  "
        f"{to_float(ticker.price_change):+.4f} ({_fmt_pct(ticker.price_change_percent)})  "
        f"H {_fmt_price(ticker.high_24h)}  L {_fmt_price(ticker.low_24h)}"
    )


def chart_placeholder(selected: Optional[str], candles: Optional[list[Candle]]) -> str:
    """Message shown instead of the chart; "" when there is something to draw."""
    if not selected:
        return "Select a pair to view its chart"
    if candles is None:
        return "Loading candles…" if _utf_terminal() else "Loading candles..."
    if not candles:
        return "No candle data"
    return ""


def _draw_header(stdscr, colors: dict[str, int], state: DashboardState, width: int) -> None:
    now = datetime.now().strftime("%y-%m-%d %H:%M:%S")
    n = len(state.get_all_symbols())
    header = f"Binance Portal  |  {now}  |  pairs={n}  |  refresh={state.config.refresh_interval}s"
    stdscr.move(0, 0)
    stdscr.clrtoeol()
    _safe_addstr(stdscr, 0, 0, _truncate(header, width), _attr(colors, "PRIMARY", curses.A_BOLD))


def _draw_table(stdscr, colors: dict[str, int], state: DashboardState, x0: int, y0: int, w: int, h: int) -> None:
    box_attr = _attr(colors, "PRIMARY")
    _draw_box(stdscr, x0, y0, w, h, box_attr, title="Pairs")
    inner_w = w - 2
    if inner_w <= 0 or h <= 2:
        return
    for i, row in enumerate(state.rows()[: h - 2]):
        text = format_table_row(row.symbol, row.ticker, inner_w)
        if row.ticker is None:
            attr = _attr(colors, "SECONDARY")
        else:
            attr = _tone_attr(colors, change_tone(row.ticker))
        if row.selected:
            attr |= curses.A_BOLD | curses.A_REVERSE
        _safe_addstr(stdscr, y0 + 1 + i, x0 + 1, text, attr)


def _draw_input(stdscr, colors: dict[str, int], state: DashboardState, x0: int, y0: int, w: int) -> None:
    if isinstance(state.mode, AddingPairMode):
        _draw_box(stdscr, x0, y0, w, INPUT_BOX_H, _attr(colors, "SECONDARY"), title="Add pair (Enter/Esc)")
        _safe_addstr(stdscr, y0 + 1, x0 + 1, _fit_cell(state.mode.buffer + "_", w - 2), _attr(colors, "TEXT", curses.A_BOLD))
    else:
        _draw_box(stdscr, x0, y0, w, INPUT_BOX_H, _attr(colors, "PRIMARY"), title="Input")
        _safe_addstr(stdscr, y0 + 1, x0 + 1, _fit_cell("press a to add a pair", w - 2), _attr(colors, "TEXT"))


def _draw_info(stdscr, colors: dict[str, int], state: DashboardState, x0: int, y0: int, w: int) -> None:
    _draw_box(stdscr, x0, y0, w, INFO_BOX_H, _attr(colors, "PRIMARY"), title="Info")
    ticker = state.ticker_for(state.selected)
    attr = _attr(colors, "SECONDARY") if ticker is None else _tone_attr(colors, change_tone(ticker))
    _safe_addstr(stdscr, y0 + 1, x0 + 1, _fit_cell(format_info_line(state.selected, ticker), w - 2), attr)


def _draw_chart(stdscr, colors: dict[str, int], state: DashboardState, x0: int, y0: int, w: int, h: int) -> None:
    title = f"{state.selected} (5m)" if state.selected else "Chart (5m)"
    _draw_box(stdscr, x0, y0, w, h, _attr(colors, "PRIMARY"), title=title)
    if w <= 2 or h <= 2:
        return

    candles = state.candles_for(state.selected)
    placeholder = chart_placeholder(state.selected, candles)
    if placeholder:
        _safe_addstr(stdscr, y0 + 1 + (h - 2) // 2, x0 + 1, _fit_cell(placeholder, w - 2), _attr(colors, "SECONDARY"))
        return

    grid = rasterize(layout_candles(candles or [], w, h))
    for (col, row), cell in grid.items():
        ch = _glyph_char(cell.glyph)
        _safe_addstr(stdscr, y0 + 1 + row, x0 + 1 + col, ch, _tone_attr(colors, cell.tone))


def _draw_footer(stdscr, colors: dict[str, int], status: StatusLine, y: int, width: int) -> None:
    keys = _FOOTER if _utf_terminal() else _FOOTER_ASCII
    text = f"{status.text}  |  {keys}" if status.text else keys
    attr = _attr(colors, "DOWN", curses.A_BOLD) if status.is_error else _attr(colors, "SECONDARY")
    _safe_addstr(stdscr, y, 0, _fit_cell(text, max(0, width - 1)), attr)


def _draw(stdscr, colors: dict[str, int], state: DashboardState, status: StatusLine) -> None:
    stdscr.erase()
    h, w = stdscr.getmaxyx()
    if h < 8 or w < 20:
        _safe_addstr(stdscr, 0, 0, _truncate("Terminal too small", w), _attr(colors, "SECONDARY"))
        stdscr.refresh()
        return

    _draw_header(stdscr, colors, state, w)

    main_y = 1
    main_h = h - 2
    left_w = max(10, int(w * LEFT_RATIO))
    right_w = w - left_w

    _draw_table(stdscr, colors, state, 0, main_y, left_w, main_h - INPUT_BOX_H)
    _draw_input(stdscr, colors, state, 0, main_y + main_h - INPUT_BOX_H, left_w)
    _draw_info(stdscr, colors, state, left_w, main_y, right_w)
    _draw_chart(stdscr, colors, state, left_w, main_y + INFO_BOX_H, right_w, main_h - INFO_BOX_H)
    _draw_footer(stdscr, colors, status, h - 1, w)
    stdscr.refresh()


def _do_refresh(state: DashboardState, status: StatusLine) -> None:
    try:
        state.refresh()
    except FetchError as exc:
        logger.warning("refresh failed (%s): %s", exc.code, exc)
        status.text = f"Refresh failed: {exc.short()}"
        status.is_error = True
        # Next attempt waits a full interval.
        state.last_refresh = state.clock()
        return
    status.text = f"Updated {datetime.now().strftime('%H:%M:%S')}"
    status.is_error = False


def _step(
    state: DashboardState,
    router: InputRouter,
    status: StatusLine,
    key: int,
    redraw: Callable[[], None] = lambda: None,
) -> bool:
    """
    Apply one getch() result (-1 on tick timeout) and run a due refresh.

    Returns False once the user asked to quit.
    """
    if key not in (-1, curses.KEY_RESIZE):
        result = router.handle_key(key)
        if result.quit:
            logger.info("quit requested")
            return False
        if result.notice:
            logger.info("%s", result.notice)
            status.text = result.notice
            status.is_error = False
        if result.refresh:
            status.text = "Refreshing..."
            redraw()
            _do_refresh(state, status)
    # Checked after keys too, not only on tick timeouts.
    if state.should_refresh():
        _do_refresh(state, status)
    return True


def run(state: DashboardState) -> None:
    curses.wrapper(_main, state)


def _main(stdscr, state: DashboardState) -> None:
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    stdscr.keypad(True)
    stdscr.timeout(max(10, int(state.config.tick_ms)))

    colors = _init_colors(state.config.theme)
    router = InputRouter(state)
    status = StatusLine(text="Loading market data...")

    def redraw() -> None:
        _draw(stdscr, colors, state, status)

    redraw()
    # First load must succeed; the FetchError ends the session.
    state.refresh()
    status.text = f"Updated {datetime.now().strftime('%H:%M:%S')}"

    while True:
        redraw()
        if not _step(state, router, status, stdscr.getch(), redraw):
            return
