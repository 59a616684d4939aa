from __future__ import annotations

import curses
from dataclasses import dataclass

from .state import AddingPairMode, DashboardState, NormalMode

MAX_INPUT_LEN = 20

KEY_ESC = 27
ENTER_KEYS = (10, 13, curses.KEY_ENTER)
BACKSPACE_KEYS = (curses.KEY_BACKSPACE, 127, 8)


@dataclass(frozen=True)
class KeyResult:
    quit: bool = False
    refresh: bool = False
    notice: str = ""


NOOP = KeyResult()


def _is_ascii_alnum(key: int) -> bool:
    return 0 <= key < 128 and chr(key).isalnum()


class InputRouter:
    """
    Maps key codes (as returned by curses getch) onto state mutations.

    Two modes: NormalMode for commands and AddingPairMode while the user types a
    new pair. Network work is not done here; a refresh request is handed back
    to the event loop through KeyResult.refresh.
    """

    def __init__(self, state: DashboardState) -> None:
        self._state = state

    def handle_key(self, key: int) -> KeyResult:
        if isinstance(self._state.mode, AddingPairMode):
            return self._handle_adding(self._state.mode, key)
        return self._handle_normal(key)

    def _handle_normal(self, key: int) -> KeyResult:
        st = self._state
        if key in (ord("q"), ord("Q")):
            return KeyResult(quit=True)
        if key in (ord("r"), ord("R"), ord(" ")):
            return KeyResult(refresh=True)
        if ord("1") <= key <= ord("9"):
            st.select_index(key - ord("1"))
            return NOOP
        if key in (ord("a"), ord("A")):
            st.mode = AddingPairMode()
            return NOOP
        if key in (ord("d"), ord("D")):
            selected = st.selected
            if not selected:
                return NOOP
            if st.remove_custom_pair(selected):
                return KeyResult(notice=f"Removed {selected}")
            return KeyResult(notice=f"{selected} is not a custom pair")
        if key in (ord("s"), ord("S")):
            if st.save_config():
                return KeyResult(notice="Config saved")
            return KeyResult(notice="Saving config failed")
        if key in (curses.KEY_UP, ord("k")):
            st.move_selection(-1)
            return NOOP
        if key in (curses.KEY_DOWN, ord("j")):
            st.move_selection(1)
            return NOOP
        return NOOP

    def _handle_adding(self, mode: AddingPairMode, key: int) -> KeyResult:
        st = self._state
        if key == KEY_ESC:
            st.mode = NormalMode()
            return NOOP
        if key in ENTER_KEYS:
            st.mode = NormalMode()
            if not mode.buffer:
                return NOOP
            if st.add_custom_pair(mode.buffer):
                return KeyResult(notice=f"Added {mode.buffer.upper()}")
            return KeyResult(notice=f"Could not add {mode.buffer.upper()}: already tracked or list full")
        if key in BACKSPACE_KEYS:
            st.mode = AddingPairMode(buffer=mode.buffer[:-1])
            return NOOP
        if _is_ascii_alnum(key) and len(mode.buffer) < MAX_INPUT_LEN:
            st.mode = AddingPairMode(buffer=mode.buffer + chr(key))
        return NOOP
