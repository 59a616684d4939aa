from __future__ import annotations

import argparse
import logging
import sys

from .api import BinanceClient
from .config import ENV_PREFIX, default_config_path, load_config
from .runtime import ConfigError, safe_main, setup_logging
from .state import DashboardState
from .tui import run

logger = logging.getLogger("portal_tui")

_EPILOG = f"""\
environment:
  {ENV_PREFIX}CONFIG             config file (default: $XDG_CONFIG_HOME/binance-portal-tui/config.json)
  {ENV_PREFIX}REFRESH_INTERVAL   refresh interval seconds (default: 20)
  {ENV_PREFIX}API_URL            REST base URL (default: https://api.binance.com)
  {ENV_PREFIX}MAX_DISPLAY_PAIRS  tracked pair capacity (default: 20)
  {ENV_PREFIX}TICK_MS            input poll period in ms (default: 250)
  {ENV_PREFIX}LOG_LEVEL          DEBUG/INFO/WARNING/ERROR (default: INFO)
  {ENV_PREFIX}LOG_FORMAT         plain/json (default: plain)
  {ENV_PREFIX}LOG_FILE           log file, "none" to disable (default: portal-tui.log next to the config)
"""


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Binance Portal TUI: live 24h tickers and 5m candlesticks in the terminal",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.parse_args()

    config_path = default_config_path()
    log_path = setup_logging(component="portal_tui", log_dir=str(config_path.parent))

    def _run() -> None:
        if config_path.is_dir():
            raise ConfigError(f"config path is a directory: {config_path}", path=str(config_path))
        cfg = load_config(config_path)
        client = BinanceClient(cfg.binance_api_url)
        state = DashboardState(config=cfg, fetcher=client, config_path=str(config_path))
        logger.info(
            "starting: %d pairs, refresh=%ss, api=%s, config=%s",
            len(state.get_all_symbols()),
            cfg.refresh_interval,
            client.base_url,
            config_path,
        )
        try:
            run(state)
        finally:
            client.close()

    code = safe_main(_run, component="portal_tui")
    if code not in (0, 130):
        hint = f"; see {log_path}" if log_path else ""
        print(f"portal-tui exited with code {code}{hint}", file=sys.stderr)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
