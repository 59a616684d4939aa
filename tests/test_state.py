from __future__ import annotations

import json

import pytest

from portal_tui.config import AppConfig, DEFAULT_PAIRS, TradingPairs
from portal_tui.runtime.errors import FetchError
from portal_tui.state import DashboardState


def test_all_symbols_defaults_then_customs(state) -> None:
    assert state.add_custom_pair("dogeusdt")
    syms = state.get_all_symbols()
    assert syms[: len(DEFAULT_PAIRS)] == DEFAULT_PAIRS
    assert syms[-1] == "DOGEUSDT"
    assert len(syms) == 9


def test_all_symbols_never_duplicated_or_over_capacity(fetcher, clock) -> None:
    pairs = TradingPairs(
        default_pairs=["BTCUSDT", "ETHUSDT", "BTCUSDT"],
        custom_pairs=["ETHUSDT", "SOLUSDT", "XRPUSDT"],
        max_display_pairs=3,
    )
    st = DashboardState(config=AppConfig(trading_pairs=pairs), fetcher=fetcher, clock=clock)

    syms = st.get_all_symbols()
    assert syms == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]
    assert len(syms) == len(set(syms))


def test_add_twice_second_fails(state) -> None:
    assert state.add_custom_pair("SOLUSDT") is True
    before = list(state.config.trading_pairs.custom_pairs)
    assert state.add_custom_pair("solusdt") is False
    assert state.config.trading_pairs.custom_pairs == before


def test_add_default_pair_fails(state) -> None:
    assert state.add_custom_pair("btc/usdt") is False
    assert state.config.trading_pairs.custom_pairs == []


def test_add_invalid_symbol_fails(state) -> None:
    assert state.add_custom_pair("") is False
    assert state.add_custom_pair("!!") is False


def test_add_at_capacity_fails(state) -> None:
    state.config.trading_pairs.max_display_pairs = 9
    assert state.add_custom_pair("SOLUSDT") is True
    assert state.add_custom_pair("DOGEUSDT") is False
    assert "DOGEUSDT" not in state.get_all_symbols()


def test_add_persists_to_config_file(state, tmp_path) -> None:
    assert state.add_custom_pair("SOLUSDT")
    data = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
    assert data["trading_pairs"]["custom_pairs"] == ["SOLUSDT"]


def test_remove_twice_second_fails(state) -> None:
    state.add_custom_pair("SOLUSDT")
    assert state.remove_custom_pair("SOLUSDT") is True
    assert state.remove_custom_pair("SOLUSDT") is False
    assert "SOLUSDT" not in state.get_all_symbols()


def test_remove_default_pair_fails(state) -> None:
    assert state.remove_custom_pair("BTCUSDT") is False
    assert "BTCUSDT" in state.get_all_symbols()


def test_remove_selected_keeps_selection_without_price(state) -> None:
    state.add_custom_pair("SOLUSDT")
    state.refresh()
    state.select_symbol("SOLUSDT")

    assert state.remove_custom_pair("SOLUSDT")
    assert state.selected == "SOLUSDT"
    assert state.ticker_for(state.selected) is None
    assert state.candles_for(state.selected) is None


def test_persist_failure_keeps_in_memory_change(fetcher, clock, tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    st = DashboardState(
        config=AppConfig(), fetcher=fetcher, clock=clock, config_path=str(blocker / "config.json")
    )

    assert st.add_custom_pair("SOLUSDT") is True
    assert "SOLUSDT" in st.get_all_symbols()
    assert st.save_config() is False


def test_should_refresh_tracks_interval(state, clock) -> None:
    state.refresh()
    assert state.last_refresh == clock.now

    clock.advance(19)
    assert state.should_refresh() is False
    clock.advance(1)
    assert state.should_refresh() is True


def test_refresh_populates_caches(state, fetcher) -> None:
    assert state.ticker_for("BTCUSDT") is None

    state.refresh()

    syms = state.get_all_symbols()
    assert fetcher.ticker_calls == [syms]
    assert sorted(fetcher.candle_calls) == sorted(syms)
    assert state.ticker_for("BTCUSDT").price == "100.0"
    assert len(state.candles_for("ETHUSDT")) == 3


def test_failed_refresh_leaves_caches_untouched(state, fetcher, clock) -> None:
    state.refresh()
    tickers = state.tickers
    candles = state.candles
    stamp = state.last_refresh

    clock.advance(30)
    fetcher.fail = True
    with pytest.raises(FetchError):
        state.refresh()

    assert state.tickers is tickers
    assert state.candles is candles
    assert state.last_refresh == stamp


def test_one_failed_candle_fetch_discards_whole_generation(state, fetcher, clock) -> None:
    state.refresh()
    tickers = state.tickers
    candles = state.candles
    stamp = state.last_refresh

    clock.advance(30)
    fetcher.price = "250.0"
    fetcher.fail_candles = {"LINKUSDT"}
    with pytest.raises(FetchError) as exc_info:
        state.refresh()

    assert exc_info.value.symbol == "LINKUSDT"
    assert len(fetcher.ticker_calls) == 2
    assert state.tickers is tickers
    assert state.candles is candles
    assert state.ticker_for("BTCUSDT").price == "100.0"
    assert state.last_refresh == stamp


def test_omitted_ticker_keeps_previous_value(state, fetcher) -> None:
    state.refresh()
    previous = state.ticker_for("XRPUSDT")

    fetcher.omit = {"XRPUSDT"}
    state.refresh()

    assert state.ticker_for("XRPUSDT") is previous


def test_new_pair_shows_loading_until_refresh(state) -> None:
    state.refresh()
    state.add_custom_pair("SOLUSDT")

    rows = {r.symbol: r for r in state.rows()}
    assert rows["SOLUSDT"].ticker is None
    assert rows["BTCUSDT"].ticker is not None

    state.refresh()
    assert state.ticker_for("SOLUSDT") is not None


def test_navigation_clamps_without_wraparound(state) -> None:
    assert state.move_selection(1) is True
    assert state.selected == "BTCUSDT"

    assert state.move_selection(-1) is False
    assert state.selected == "BTCUSDT"

    assert state.select_index(7)
    assert state.move_selection(1) is False
    assert state.selected == "XRPUSDT"


def test_select_index_out_of_range_is_noop(state) -> None:
    state.select_index(1)
    assert state.select_index(8) is False
    assert state.select_index(-1) is False
    assert state.selected == "ETHUSDT"


def test_navigation_on_empty_set_is_noop(fetcher, clock) -> None:
    pairs = TradingPairs(default_pairs=[], custom_pairs=[])
    st = DashboardState(config=AppConfig(trading_pairs=pairs), fetcher=fetcher, clock=clock)

    assert st.move_selection(1) is False
    assert st.selected is None
    st.refresh()
    assert fetcher.ticker_calls == []
