from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

APP_DIR_NAME = "binance-portal-tui"
CONFIG_FILE_NAME = "config.json"
ENV_PREFIX = "BINANCE_PORTAL_"

DEFAULT_PAIRS = [
    "BTCUSDT",
    "ETHUSDT",
    "BNBUSDT",
    "ADAUSDT",
    "DOTUSDT",
    "LINKUSDT",
    "LTCUSDT",
    "XRPUSDT",
]


@dataclass
class ThemeConfig:
    primary: str = "#00ff00"
    secondary: str = "#ffff00"
    background: str = "#000000"
    text: str = "#ffffff"


@dataclass
class TradingPairs:
    default_pairs: list[str] = field(default_factory=lambda: list(DEFAULT_PAIRS))
    custom_pairs: list[str] = field(default_factory=list)
    max_display_pairs: int = 20

    def all_symbols(self) -> list[str]:
        """Defaults then customs, deduplicated and capped at max_display_pairs."""
        out: list[str] = []
        for sym in [*self.default_pairs, *self.custom_pairs]:
            if len(out) >= self.max_display_pairs:
                break
            if sym in out:
                continue
            out.append(sym)
        return out


@dataclass
class AppConfig:
    refresh_interval: int = 20  # seconds
    binance_api_url: str = "https://api.binance.com"
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    trading_pairs: TradingPairs = field(default_factory=TradingPairs)
    # Input poll period; runtime only, never written to disk.
    tick_ms: int = field(default=250, compare=False)


def _dedup_keep_order(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for x in items:
        if x in seen:
            continue
        seen.add(x)
        out.append(x)
    return out


_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,20}$")


def normalize_symbol(raw: str) -> str:
    """
    Normalize one trading pair to the exchange's spelling.

    Accept examples:
      - btcusdt  -> BTCUSDT
      - BTC/USDT -> BTCUSDT
      - BTC-USDT -> BTCUSDT
      - BTC_USDT -> BTCUSDT
    Returns "" for anything that is not a plausible pair.
    """
    t = (raw or "").strip().upper()
    for sep in ("/", "-", "_", " "):
        t = t.replace(sep, "")
    if not _SYMBOL_RE.match(t):
        return ""
    return t


def normalize_symbols(raw: object) -> list[str]:
    if not isinstance(raw, list):
        return []
    syms = [normalize_symbol(str(x)) for x in raw if isinstance(x, str)]
    return _dedup_keep_order([s for s in syms if s])


_HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def _color(raw: object, default: str) -> str:
    if isinstance(raw, str) and _HEX_COLOR_RE.match(raw.strip()):
        return raw.strip().lower()
    return default


def _positive_int(raw: object, default: int) -> int:
    if isinstance(raw, bool):
        return default
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def default_config_path() -> Path:
    explicit = os.getenv(ENV_PREFIX + "CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    base = os.getenv("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / APP_DIR_NAME / CONFIG_FILE_NAME


def _from_dict(data: dict) -> AppConfig:
    defaults = AppConfig()

    theme_raw = data.get("theme") if isinstance(data.get("theme"), dict) else {}
    theme = ThemeConfig(
        primary=_color(theme_raw.get("primary"), defaults.theme.primary),
        secondary=_color(theme_raw.get("secondary"), defaults.theme.secondary),
        background=_color(theme_raw.get("background"), defaults.theme.background),
        text=_color(theme_raw.get("text"), defaults.theme.text),
    )

    pairs_raw = data.get("trading_pairs") if isinstance(data.get("trading_pairs"), dict) else {}
    default_pairs = normalize_symbols(pairs_raw.get("default_pairs"))
    pairs = TradingPairs(
        default_pairs=default_pairs if "default_pairs" in pairs_raw else list(DEFAULT_PAIRS),
        custom_pairs=normalize_symbols(pairs_raw.get("custom_pairs")),
        max_display_pairs=_positive_int(pairs_raw.get("max_display_pairs"), defaults.trading_pairs.max_display_pairs),
    )

    url = data.get("binance_api_url")
    return AppConfig(
        refresh_interval=_positive_int(data.get("refresh_interval"), defaults.refresh_interval),
        binance_api_url=url.strip().rstrip("/") if isinstance(url, str) and url.strip() else defaults.binance_api_url,
        theme=theme,
        trading_pairs=pairs,
    )


def _apply_env(cfg: AppConfig) -> AppConfig:
    raw = os.getenv(ENV_PREFIX + "REFRESH_INTERVAL")
    if raw is not None:
        cfg.refresh_interval = _positive_int(raw, cfg.refresh_interval)
    raw = os.getenv(ENV_PREFIX + "API_URL")
    if raw and raw.strip():
        cfg.binance_api_url = raw.strip().rstrip("/")
    raw = os.getenv(ENV_PREFIX + "MAX_DISPLAY_PAIRS")
    if raw is not None:
        cfg.trading_pairs.max_display_pairs = _positive_int(raw, cfg.trading_pairs.max_display_pairs)
    raw = os.getenv(ENV_PREFIX + "TICK_MS")
    if raw is not None:
        cfg.tick_ms = _positive_int(raw, cfg.tick_ms)
    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load the config file, falling back to defaults on any problem."""
    p = Path(path) if path else default_config_path()
    if not p.exists():
        return _apply_env(AppConfig())
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("config %s unreadable, using defaults: %s", p, exc)
        return _apply_env(AppConfig())
    if not isinstance(data, dict):
        logger.warning("config %s is not a JSON object, using defaults", p)
        return _apply_env(AppConfig())
    return _apply_env(_from_dict(data))


def save_config(path: str | Path, cfg: AppConfig) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = asdict(cfg)
    data.pop("tick_ms", None)
    data["trading_pairs"]["default_pairs"] = _dedup_keep_order(list(cfg.trading_pairs.default_pairs))
    data["trading_pairs"]["custom_pairs"] = _dedup_keep_order(list(cfg.trading_pairs.custom_pairs))
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, p)
