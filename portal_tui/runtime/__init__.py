"""Runtime support (logging and error handling)."""

from .logging_utils import setup_logging  # noqa: F401
from .errors import ConfigError, FetchError, PortalError, safe_main  # noqa: F401
