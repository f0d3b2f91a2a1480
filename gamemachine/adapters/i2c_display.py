"""gamemachine/adapters/i2c_display.py

HD44780 character LCD behind a PCF8574 "backpack" (4-bit mode).

Backpack wiring: P0=RS, P1=RW, P2=EN, P3=backlight, P4..P7=D4..D7.
Row start addresses follow the 20x4 controller layout: rows 1 and 3 add
0x40, rows 2 and 3 add the column count (0x00, 0x40, 0x14, 0x54).
"""

from __future__ import annotations

import time
from typing import Callable

from ..constants import DISPLAY_ADDR, DISPLAY_COLS, DISPLAY_ROWS
from ..logging_utils import logprintf
from ..ports import I2cBusPort

LCD_CLEARDISPLAY = 0x01
LCD_RETURNHOME = 0x02
LCD_ENTRYMODESET = 0x04
LCD_DISPLAYCONTROL = 0x08
LCD_FUNCTIONSET = 0x20
LCD_SETDDRAMADDR = 0x80

LCD_ENTRYLEFT = 0x02
LCD_DISPLAYON = 0x04
LCD_2LINE = 0x08

_RS = 1 << 0
_EN = 1 << 2
_BACKLIGHT = 1 << 3


class I2cCharacterDisplay:
    """Write-only HD44780 driver; only the operations the page engine uses."""

    def __init__(
        self,
        bus: I2cBusPort,
        address: int = DISPLAY_ADDR,
        cols: int = DISPLAY_COLS,
        rows: int = DISPLAY_ROWS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._bus = bus
        self.address = address
        self.cols = cols
        self.rows = rows
        self._sleep = sleep
        self._backlight = True
        self._display_control = LCD_DISPLAYCONTROL
        self._pos = 0

    def _expander_write(self, value: int) -> bool:
        if self._backlight:
            value |= _BACKLIGHT
        return self._bus.write_byte(self.address, value)

    def _write4bits(self, nibble: int, mode: int = 0) -> None:
        value = ((nibble & 0x0F) << 4) | mode
        self._expander_write(value | _EN)
        self._expander_write(value)

    def _send(self, value: int, mode: int) -> None:
        self._write4bits(value >> 4, mode)
        self._write4bits(value & 0x0F, mode)

    def command(self, value: int) -> None:
        self._send(value, 0)

    def _data(self, value: int) -> None:
        self._send(value, _RS)

    def init(self) -> bool:
        if not self._bus.open():
            return False
        if not self._bus.write_byte(self.address, 0x00):
            logprintf(0, "Display not found at 0x%02X", self.address)
            return False

        self._sleep(0.1)
        # Forced 4-bit entry sequence from the HD44780 datasheet.
        self._write4bits(0x03)
        self._sleep(0.005)
        self._write4bits(0x03)
        self._sleep(0.0002)
        self._write4bits(0x03)
        self._sleep(0.0002)
        self._write4bits(0x02)
        self._sleep(0.0002)

        self.command(LCD_FUNCTIONSET | LCD_2LINE)
        self.command(LCD_ENTRYMODESET | LCD_ENTRYLEFT)
        self.display(True)
        self.clear()
        logprintf(3, "Display %dx%d ready at 0x%02X", self.cols, self.rows, self.address)
        return True

    def clear(self) -> None:
        self.command(LCD_CLEARDISPLAY)
        self._pos = 0
        self._sleep(0.002)

    def home(self) -> None:
        self.command(LCD_RETURNHOME)
        self._pos = 0
        self._sleep(0.0016)

    def row_offset(self, row: int) -> int:
        offset = 0
        if row & 0x01:
            offset += 0x40
        if row & 0x02:
            offset += self.cols
        return offset

    def set_cursor(self, col: int, row: int) -> None:
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            return
        self._pos = col
        self.command(LCD_SETDDRAMADDR | (self.row_offset(row) + col))

    def write(self, text: str) -> None:
        for ch in text:
            if self._pos >= self.cols:
                break
            code = ord(ch)
            self._data(code if code < 0x100 else ord("?"))
            self._pos += 1

    def display(self, on: bool) -> None:
        if on:
            self._display_control |= LCD_DISPLAYON
        else:
            self._display_control &= ~LCD_DISPLAYON
        self.command(self._display_control)

    def backlight(self, on: bool) -> None:
        self._backlight = on
        self._expander_write(0)

    def close(self) -> None:
        self._bus.close()


__all__ = ["I2cCharacterDisplay"]
