"""Error types and the process entry guard."""

from __future__ import annotations

import logging
from typing import Callable, Optional


class PortalError(Exception):
    """Base class for errors the dashboard knows how to report."""

    code = "portal_error"


class ConfigError(PortalError):
    code = "config_error"

    def __init__(self, message: str, *, path: str = ""):
        super().__init__(message)
        self.path = path


class FetchError(PortalError):
    """Transport-level failure talking to the exchange (network, timeout, bad body)."""

    code = "external_service_error"

    def __init__(self, message: str, *, path: str = "", symbol: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.symbol = symbol
        self.status = status

    def short(self) -> str:
        """One-line summary for the status bar."""
        where = self.symbol or self.path or "request"
        if self.status is not None:
            return f"{where}: HTTP {self.status}"
        return f"{where}: {self}"


def safe_main(main_func: Callable[[], None], component: Optional[str] = None) -> int:
    """Run `main_func` and translate its outcome into a process exit code."""
    logger = logging.getLogger(component or __name__)
    try:
        main_func()
        return 0
    except KeyboardInterrupt:
        logger.warning("interrupted, exiting")
        return 130
    except PortalError as exc:
        logger.error("run failed: %s", exc, extra={"error_code": exc.code})
        return 2
    except Exception as exc:
        logger.exception("unhandled error: %s", exc)
        return 1
