"""gamemachine/application/display_engine.py

Page engine for the 20x4 character display.

Pages form a stack owned by the engine; the top of the stack is the
current page. A page never touches the LCD or the workers directly: it
draws through the engine's display API and reaches GNSS, radio and
outputs through the engine's service methods.

Page switches are deferred. :meth:`PageEngine.activate_page` only parks
the request; the supervisor applies it on its next iteration through
:meth:`PageEngine.process_pending`, and skips the tick for that
iteration.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING, Any, Optional

from ..domain import GpsFix
from ..logging_utils import logprintf
from ..ports import CharacterDisplayPort

if TYPE_CHECKING:  # pragma: no cover
    from .gnss import GnssWorker
    from .inout import InOutWorker
    from .radio import RadioWorker

DEFAULT_PERIODIC_MS = 100
RADIO_LOG_SIZE = 16

_UNSET: Any = object()


class DisplayPage:
    """Base page: override what the page needs."""

    name = "Page"

    def __init__(self) -> None:
        self.engine: Optional["PageEngine"] = None

    def load(self, engine: "PageEngine") -> bool:
        """Called once, when the page is first activated."""

        self.engine = engine
        return True

    def refresh(self) -> None:
        """The page became current again after the one above it left."""

    def key_handle(self, char: str, code: int) -> None:
        pass

    def tick(self) -> None:
        pass

    def periodic_time(self) -> int:
        return DEFAULT_PERIODIC_MS

    def close(self) -> None:
        self.engine = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class PageEngine:
    def __init__(
        self,
        display: CharacterDisplayPort,
        *,
        gnss: Optional["GnssWorker"] = None,
        radio: Optional["RadioWorker"] = None,
        inout: Optional["InOutWorker"] = None,
    ):
        self._display = display
        self.cols = display.cols
        self.rows = display.rows
        self._gnss = gnss
        self._radio = radio
        self._inout = inout

        self._stack: list[DisplayPage] = []
        self._pending_lock = threading.Lock()
        self._pending: Any = _UNSET
        self._cursor = (0, 0)
        self._radio_log: deque[bytes] = deque(maxlen=RADIO_LOG_SIZE)

    # --- display API ----------------------------------------------------------

    def _valid(self, col: int, row: int) -> bool:
        return 0 <= col < self.cols and 0 <= row < self.rows

    def clean(self) -> None:
        self._display.clear()
        self._cursor = (0, 0)

    def clean_row(self, row: int) -> bool:
        if not self._valid(0, row):
            return False
        self._display.set_cursor(0, row)
        self._display.write(" " * self.cols)
        self._display.set_cursor(0, row)
        self._cursor = (0, row)
        return True

    def move_cursor(self, col: int, row: int) -> bool:
        if not self._valid(col, row):
            return False
        self._display.set_cursor(col, row)
        self._cursor = (col, row)
        return True

    def print(self, text: object) -> bool:
        """Write at the cursor, clipped at the end of the row."""

        col, row = self._cursor
        room = self.cols - col
        if room <= 0:
            return False
        chunk = str(text)[:room]
        self._display.write(chunk)
        self._cursor = (col + len(chunk), row)
        return True

    def print_at(self, col: int, row: int, text: object) -> bool:
        if not self.move_cursor(col, row):
            return False
        return self.print(text)

    def backlight(self, on: bool) -> None:
        self._display.backlight(on)

    def display(self, on: bool) -> None:
        self._display.display(on)

    # --- page stack -------------------------------------------------------------

    @property
    def current_page(self) -> Optional[DisplayPage]:
        return self._stack[-1] if self._stack else None

    @property
    def page_count(self) -> int:
        return len(self._stack)

    @property
    def has_pending(self) -> bool:
        with self._pending_lock:
            return self._pending is not _UNSET

    def activate_page(self, page: Optional[DisplayPage]) -> bool:
        """Request ``page`` (``None``: go back). ``False`` if a request is already parked."""

        with self._pending_lock:
            if self._pending is not _UNSET:
                logprintf(3, "Display: activation of %r refused, one already pending", page)
                return False
            self._pending = page
        return True

    def push_page(self, page: DisplayPage) -> bool:
        """Load ``page`` and make it current immediately."""

        if not page.load(self):
            logprintf(1, "Display: page %r failed to load", page)
            return False
        self._stack.append(page)
        logprintf(3, "Display: %r is current", page)
        return True

    def pop_page(self) -> bool:
        """Close the current page and refresh the one below; the root page stays."""

        if len(self._stack) <= 1:
            return False
        self._stack.pop().close()
        current = self._stack[-1]
        logprintf(3, "Display: back to %r", current)
        current.refresh()
        return True

    def process_pending(self) -> bool:
        """Apply a parked activation; ``True`` when one was consumed."""

        with self._pending_lock:
            page, self._pending = self._pending, _UNSET
        if page is _UNSET:
            return False
        if page is None:
            self.pop_page()
        else:
            self.push_page(page)
        return True

    def dispatch_key(self, char: str, code: int) -> None:
        page = self.current_page
        if page is not None:
            page.key_handle(char, code)

    def tick(self) -> None:
        page = self.current_page
        if page is not None:
            page.tick()

    def tick_interval(self) -> int:
        page = self.current_page
        return page.periodic_time() if page is not None else DEFAULT_PERIODIC_MS

    def shutdown(self) -> None:
        with self._pending_lock:
            self._pending = _UNSET
        while self._stack:
            self._stack.pop().close()

    # --- services ---------------------------------------------------------------

    def gnss_fix(self) -> Optional[GpsFix]:
        return self._gnss.fix() if self._gnss is not None else None

    def broadcast(self, text: str) -> bool:
        if self._radio is None:
            return False
        return self._radio.send_message(text.encode("ascii", errors="replace"))

    def record_radio_message(self, data: bytes) -> None:
        self._radio_log.append(data)

    def last_radio_message(self) -> Optional[bytes]:
        return self._radio_log[-1] if self._radio_log else None

    def radio_messages(self) -> list[bytes]:
        return list(self._radio_log)

    def led(self, index: int, on: bool) -> bool:
        return self._inout.led(index, on) if self._inout is not None else False

    def relay(self, index: int, on: bool) -> bool:
        return self._inout.relay(index, on) if self._inout is not None else False

    def relay_state(self, index: int) -> bool:
        if self._inout is None:
            return False
        return bool(self._inout.output_state(f"RELAY{index}"))


__all__ = ["DisplayPage", "PageEngine"]
