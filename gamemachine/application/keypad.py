"""gamemachine/application/keypad.py

4x4 matrix keypad behind a PCF8574 expander.

Rows hang on P4..P7 and columns on P0..P3. A scan drives the columns low
and reads which row follows, then drives the rows low and reads the
column. Exactly one low line on each side gives a cell index
``row + 4 * column``; no low line means no key, anything else is a
failed scan (two keys, bounce, bus error).
"""

from __future__ import annotations

from typing import Callable, Optional

from ..constants import KEYMAP_4X4, KEYPAD_DEBOUNCE_MS, KEYPAD_FAIL, KEYPAD_NOKEY
from ..domain import KeyEvent
from ..ports import I2cBusPort
from ..time_utils import monotonic_ms

ROW_MASK = 0xF0
COL_MASK = 0x0F

_ROWS = {0xE0: 0, 0xD0: 1, 0xB0: 2, 0x70: 3}
_COLS = {0x0E: 0, 0x0D: 4, 0x0B: 8, 0x07: 12}


class KeyPad:
    """Scanner plus press/release state.

    :meth:`poll` returns a :class:`KeyEvent` once per physical press.
    After an accepted press or release, further state changes are ignored
    for ``debounce_ms``; a new press is accepted only after a release.
    """

    def __init__(
        self,
        bus: I2cBusPort,
        address: int,
        keymap: str = KEYMAP_4X4,
        debounce_ms: int = KEYPAD_DEBOUNCE_MS,
        clock: Callable[[], int] = monotonic_ms,
    ):
        if len(keymap) != 16:
            raise ValueError("keymap must have 16 entries")
        self._bus = bus
        self.address = address
        self.keymap = keymap
        self.debounce_ms = debounce_ms
        self._clock = clock
        self._pressed = False
        self._last_change_ms: Optional[int] = None
        self.last_key = KEYPAD_NOKEY

    def begin(self) -> bool:
        """Park the columns low so the rows can signal a press."""

        return self._read(ROW_MASK) is not None

    def is_connected(self) -> bool:
        return self._bus.read_byte(self.address) is not None

    def _read(self, mask: int) -> Optional[int]:
        if not self._bus.write_byte(self.address, mask):
            return None
        return self._bus.read_byte(self.address)

    def scan(self) -> int:
        """Raw cell index 0..15, ``KEYPAD_NOKEY`` or ``KEYPAD_FAIL``."""

        rows = self._read(ROW_MASK)
        if rows is None:
            return KEYPAD_FAIL
        if rows == ROW_MASK:
            return KEYPAD_NOKEY
        if rows not in _ROWS:
            return KEYPAD_FAIL

        cols = self._read(COL_MASK)
        if cols is None:
            return KEYPAD_FAIL
        if cols == COL_MASK:
            return KEYPAD_NOKEY
        if cols not in _COLS:
            return KEYPAD_FAIL

        return _ROWS[rows] + _COLS[cols]

    def _in_window(self, now: int) -> bool:
        if self.debounce_ms <= 0 or self._last_change_ms is None:
            return False
        return now - self._last_change_ms < self.debounce_ms

    def poll(self) -> Optional[KeyEvent]:
        key = self.scan()
        if key == KEYPAD_FAIL:
            return None

        now = self._clock()
        if key == KEYPAD_NOKEY:
            if self._pressed and not self._in_window(now):
                self._pressed = False
                self._last_change_ms = now
            return None

        if self._pressed or self._in_window(now):
            return None

        self._pressed = True
        self._last_change_ms = now
        self.last_key = key
        return KeyEvent(char=self.keymap[key], code=key, timestamp_ms=now)


__all__ = ["KeyPad", "ROW_MASK", "COL_MASK"]
