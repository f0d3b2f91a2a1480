"""gamemachine/application/pages.py

Screens shown on the 20x4 display.
"""

from __future__ import annotations

from typing import Optional

from .. import __version__
from ..constants import LED_COUNT, RELAY_COUNT
from ..domain import FixField, GpsFix
from .display_engine import DisplayPage

TITLE = "AIRSOFT GAME MACHINE"
BANNER = f"Airsoft Game Machine v{__version__} * A: ping  B: status * "
PING_TEXT = "PING"


def format_fix_line(fix: Optional[GpsFix]) -> str:
    if fix is None or not fix.has(FixField.LOCATION):
        return "GPS: no fix"
    return f"{fix.latitude_deg:+.5f} {fix.longitude_deg:+.5f}"


def printable(data: bytes) -> str:
    return "".join(chr(b) if 32 <= b < 127 else "." for b in data)


class MainPage(DisplayPage):
    """Title, scrolling banner, GNSS position and the last key or radio message."""

    name = "Main Page"

    def __init__(self, banner: str = BANNER):
        super().__init__()
        self.banner = banner
        self.position = 0
        self._ticks = 0
        self.last_line = ""

    def load(self, engine) -> bool:
        super().load(engine)
        engine.clean()
        engine.print_at(0, 0, TITLE)
        self._draw_banner()
        self._draw_status()
        return True

    def refresh(self) -> None:
        assert self.engine is not None
        self.engine.clean()
        self.engine.print_at(0, 0, TITLE)
        self._draw_banner()
        self._draw_status()

    def _draw_banner(self) -> None:
        assert self.engine is not None
        cols = self.engine.cols
        self.engine.print_at(0, 1, self.banner[self.position:self.position + cols].ljust(cols))

    def _draw_status(self) -> None:
        engine = self.engine
        assert engine is not None
        engine.print_at(0, 2, format_fix_line(engine.gnss_fix()).ljust(engine.cols))
        message = engine.last_radio_message()
        if message is not None:
            self.last_line = "RX " + printable(message)
        engine.print_at(0, 3, self.last_line.ljust(engine.cols))

    def advance_banner(self) -> None:
        assert self.engine is not None
        self.position += 1
        if self.position >= len(self.banner) - self.engine.cols:
            self.position = 0

    def tick(self) -> None:
        self._ticks += 1
        if self._ticks % 2 == 0:
            self.advance_banner()
            self._draw_banner()
        self._draw_status()

    def key_handle(self, char: str, code: int) -> None:
        engine = self.engine
        assert engine is not None
        if char == "A":
            sent = engine.broadcast(PING_TEXT)
            self.last_line = "TX PING" if sent else "TX failed"
        elif char == "B":
            engine.activate_page(StatusPage())
            return
        else:
            self.last_line = f"KEY {char} ({code})"
        engine.print_at(0, 3, self.last_line.ljust(engine.cols))


class StatusPage(DisplayPage):
    """Relay states; ``1``..``6`` toggle a relay, ``0`` runs the lamp test, ``*`` goes back."""

    name = "Status Page"

    def __init__(self) -> None:
        super().__init__()
        self.lamp_test = False

    def load(self, engine) -> bool:
        super().load(engine)
        self._draw()
        return True

    def refresh(self) -> None:
        self._draw()

    def _draw(self) -> None:
        engine = self.engine
        assert engine is not None
        engine.clean()
        engine.print_at(0, 0, "STATUS")
        states = "".join("1" if engine.relay_state(i) else "0" for i in range(1, RELAY_COUNT + 1))
        engine.print_at(0, 1, f"RELAYS {states}")
        engine.print_at(0, 2, f"LAMPS {'TEST' if self.lamp_test else 'OFF'}")
        engine.print_at(0, 3, "1-6 relay 0 test *")

    def key_handle(self, char: str, code: int) -> None:
        engine = self.engine
        assert engine is not None
        if char == "*":
            if self.lamp_test:
                self._set_lamps(False)
            engine.activate_page(None)
            return
        if char == "0":
            self._set_lamps(not self.lamp_test)
        elif char.isdigit() and 1 <= int(char) <= RELAY_COUNT:
            index = int(char)
            engine.relay(index, not engine.relay_state(index))
        else:
            return
        self._draw()

    def _set_lamps(self, on: bool) -> None:
        assert self.engine is not None
        for i in range(1, LED_COUNT + 1):
            self.engine.led(i, on)
        self.lamp_test = on


__all__ = ["MainPage", "StatusPage", "format_fix_line"]
