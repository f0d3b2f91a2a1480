"""gamemachine/application/inout.py

I/O worker: lamps, relays and the keypad on the I/O board's I²C bus.

Lamps and relays sit on two PCF8574 expanders and are active-low. All
of them are switched OFF (lines high) when the worker starts. The keypad
is scanned every ``loop_ms`` on the worker thread; accepted keystrokes
are queued for the supervisor in the order they were pressed.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from config import IoSettings

from ..adapters.pcf8574 import PCF8574
from ..constants import LED_COUNT, RELAY_COUNT
from ..domain import KeyEvent
from ..logging_utils import logprintf
from ..ports import I2cBusPort
from ..time_utils import monotonic_ms
from .keypad import KeyPad


@dataclass
class OutputLine:
    name: str
    address: int
    pin: int
    active_low: bool = True
    on: bool = False

    def level(self, on: bool) -> bool:
        return (not on) if self.active_low else on


def build_output_map(low_address: int, high_address: int) -> list[OutputLine]:
    """LED1..5 then RELAY1..6, in board order."""

    lines = [OutputLine(f"LED{i + 1}", low_address, 7 - i) for i in range(LED_COUNT)]
    lines += [OutputLine(f"RELAY{i + 1}", low_address, 2 - i) for i in range(3)]
    lines += [OutputLine(f"RELAY{i + 4}", high_address, 7 - i) for i in range(3)]
    return lines


class InOutWorker:
    def __init__(
        self,
        settings: IoSettings,
        bus: I2cBusPort,
        *,
        clock: Callable[[], int] = monotonic_ms,
    ):
        self._settings = settings
        self._bus = bus
        self._lock = bus.lock
        self._outputs = build_output_map(settings.outputs_low_address, settings.outputs_high_address)
        self._expanders = {
            address: PCF8574(bus, address)
            for address in (settings.outputs_low_address, settings.outputs_high_address)
        }
        self.keypad = KeyPad(
            bus,
            settings.keypad_address,
            keymap=settings.keymap,
            debounce_ms=settings.debounce_ms,
            clock=clock,
        )
        self._keys: "queue.Queue[KeyEvent]" = queue.Queue(maxsize=settings.key_queue_size)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- lifecycle ----------------------------------------------------------

    def start(self) -> bool:
        if not self._bus.open():
            logprintf(0, "In/Out: cannot open i2c-%d", self._settings.i2c_bus)
            return False

        with self._lock:
            for address, expander in self._expanders.items():
                if not expander.begin(0xFF):
                    logprintf(1, "In/Out: expander 0x%02X not answering", address)
            if not self.keypad.begin():
                logprintf(1, "In/Out: keypad 0x%02X not answering", self.keypad.address)
        for line in self._outputs:
            line.on = False

        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="asm-inout", daemon=True)
        self._thread.start()
        return True

    def terminate(self, timeout: Optional[float] = None) -> bool:
        self._stop.set()
        joined = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            joined = not self._thread.is_alive()
            if not joined:
                logprintf(1, "In/Out: worker did not stop within %.1f s", timeout or 0.0)
            self._thread = None
        self._bus.close()
        return joined

    # --- outputs ----------------------------------------------------------------

    def _switch(self, line: OutputLine, on: bool) -> bool:
        expander = self._expanders[line.address]
        with self._lock:
            ok = expander.write(line.pin, line.level(on))
        if ok:
            line.on = on
        else:
            logprintf(3, "In/Out: %s write failed", line.name)
        return ok

    def led(self, index: int, on: bool) -> bool:
        """Switch LED ``index`` (1..5)."""

        if not 1 <= index <= LED_COUNT:
            return False
        return self._switch(self._outputs[index - 1], on)

    def relay(self, index: int, on: bool) -> bool:
        """Switch relay ``index`` (1..6)."""

        if not 1 <= index <= RELAY_COUNT:
            return False
        return self._switch(self._outputs[LED_COUNT + index - 1], on)

    def output_state(self, name: str) -> Optional[bool]:
        for line in self._outputs:
            if line.name == name.upper():
                return line.on
        return None

    def outputs(self) -> list[OutputLine]:
        return list(self._outputs)

    # --- keys -------------------------------------------------------------------

    def keys_on_queue(self) -> int:
        return self._keys.qsize()

    def get_key(self) -> Optional[KeyEvent]:
        try:
            return self._keys.get_nowait()
        except queue.Empty:
            return None

    def scan_once(self) -> Optional[KeyEvent]:
        with self._lock:
            event = self.keypad.poll()
        if event is None:
            return None
        try:
            self._keys.put_nowait(event)
        except queue.Full:
            logprintf(1, "In/Out: key queue full, dropping %r", event.char)
            return None
        logprintf(3, "In/Out: key %r code=%d", event.char, event.code)
        return event

    def _run(self) -> None:
        logprintf(2, "In/Out: Started")
        interval = self._settings.loop_ms / 1000.0
        while not self._stop.is_set():
            self.scan_once()
            self._stop.wait(interval)
        logprintf(2, "In/Out: Terminated")


__all__ = ["InOutWorker", "OutputLine", "build_output_map"]
