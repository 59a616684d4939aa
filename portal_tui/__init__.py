"""Terminal dashboard for Binance spot tickers and 5m candlesticks."""

__version__ = "0.1.0"
