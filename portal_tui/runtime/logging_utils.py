"""Logging setup for the dashboard.

curses owns the terminal while the dashboard runs, so records go to a file by
default instead of stdout.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

DEFAULT_PLAIN_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DEFAULT_LOG_NAME = "portal-tui.log"


def _env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    if val is None:
        return default
    return val


def _normalize_level(level: str | None) -> int:
    raw = (level or "INFO").upper()
    value = getattr(logging, raw, logging.INFO)
    return value if isinstance(value, int) else logging.INFO


def _resolve_log_file(log_file: str | None, log_dir: str | None) -> str | None:
    if log_file and log_file.lower() in ("none", "null"):
        return None
    if not log_file:
        log_file = DEFAULT_LOG_NAME

    path = Path(log_file).expanduser()
    if path.is_absolute() or not log_dir:
        return str(path)
    return str(Path(log_dir) / path)


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    _RESERVED = {
        "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "message", "msg", "name", "pathname", "process",
        "processName", "relativeCreated", "stack_info", "thread", "threadName", "taskName",
    }

    def __init__(self, component: str | None = None):
        super().__init__()
        self._component = component

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if self._component:
            payload["component"] = self._component

        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else ""
            payload["exc"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in self._RESERVED}
        if extra:
            payload.update(extra)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str | None = None, fmt: str | None = None,
                  component: str | None = None, log_file: str | None = None,
                  log_dir: str | None = None) -> str | None:
    """Configure the root logger and return the log file path (if any).

    - BINANCE_PORTAL_LOG_LEVEL: DEBUG/INFO/WARNING/ERROR
    - BINANCE_PORTAL_LOG_FORMAT: plain/json
    - BINANCE_PORTAL_LOG_FILE: log file; relative paths resolve against `log_dir`,
      "none" disables logging output entirely
    """
    level_val = _normalize_level(level or _env("BINANCE_PORTAL_LOG_LEVEL", "INFO"))
    fmt_val = (fmt or _env("BINANCE_PORTAL_LOG_FORMAT", "plain") or "plain").lower()

    formatter: logging.Formatter
    if fmt_val == "json":
        formatter = JsonFormatter(component=component)
    else:
        formatter = logging.Formatter(DEFAULT_PLAIN_FORMAT)

    handlers: list[logging.Handler] = []
    file_path = _resolve_log_file(log_file or _env("BINANCE_PORTAL_LOG_FILE"), log_dir)
    if file_path:
        try:
            Path(file_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(file_path, encoding="utf-8")
        except OSError:
            file_path = None
        else:
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level_val, handlers=handlers, force=True)
    # urllib3 logs every connection at DEBUG; keep it at WARNING unless asked.
    logging.getLogger("urllib3").setLevel(max(level_val, logging.WARNING))
    return file_path

