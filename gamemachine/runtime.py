"""Supervisor for the game machine.

The supervisor builds every collaborator once, starts them in a fixed
order, runs the page loop on its own thread and tears everything down in
reverse order. Hardware access goes through factories so tests can run
the whole sequence against fakes.
"""

from __future__ import annotations

import sys
import threading
from typing import Callable, Optional, TextIO

from config import Settings

from .adapters.gpio import OUTPUT, sysfs_gpio_factory
from .adapters.i2c import SmbusI2c
from .adapters.i2c_display import I2cCharacterDisplay
from .adapters.serial_backend import AsyncSerialBackend
from .application.config_loader import ConfigError, load_config
from .application.display_engine import DEFAULT_PERIODIC_MS, DisplayPage, PageEngine
from .application.gnss import GnssWorker
from .application.inout import InOutWorker
from .application.pages import MainPage
from .application.radio import RadioWorker
from .application.timer import IntervalTimer
from .domain import AsmConfig
from .logging_utils import logprintf
from .ports import CharacterDisplayPort, GpioLinePort, I2cBusPort, SerialLinePort


def _default_display(settings: Settings) -> CharacterDisplayPort:
    d = settings.display
    return I2cCharacterDisplay(SmbusI2c(d.i2c_bus), d.address, cols=d.cols, rows=d.rows)


class Supervisor:
    """Startup, page loop and shutdown of the whole machine."""

    def __init__(
        self,
        settings: Settings,
        config_path: Optional[str] = None,
        *,
        serial_factory: Callable[[], SerialLinePort] = lambda: AsyncSerialBackend(logprintf),
        gpio_factory: Optional[Callable[[int], GpioLinePort]] = None,
        i2c_factory: Callable[[int], I2cBusPort] = SmbusI2c,
        display_factory: Optional[Callable[[Settings], CharacterDisplayPort]] = None,
        page_factory: Callable[[], DisplayPage] = MainPage,
    ):
        self.settings = settings
        self.config_path = config_path
        self._serial_factory = serial_factory
        self._gpio_factory = gpio_factory or sysfs_gpio_factory(settings.gpio_root)
        self._i2c_factory = i2c_factory
        self._display_factory = display_factory or _default_display
        self._page_factory = page_factory

        self.config: Optional[AsmConfig] = None
        self.status_led: Optional[GpioLinePort] = None
        self.blink: Optional[IntervalTimer] = None
        self.gnss: Optional[GnssWorker] = None
        self.radio: Optional[RadioWorker] = None
        self.inout: Optional[InOutWorker] = None
        self.display: Optional[CharacterDisplayPort] = None
        self.engine: Optional[PageEngine] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- startup ----------------------------------------------------------------

    def start(self) -> bool:
        """Bring everything up in order; on failure release what was acquired."""

        s = self.settings
        try:
            self.config = load_config(self.config_path)
        except ConfigError as exc:
            logprintf(0, "Startup failed: %s", exc)
            return False

        led = self._gpio_factory(s.status_led.gpio)
        if led.open(OUTPUT, 0):
            self.status_led = led
            self.blink = IntervalTimer(s.status_led.blink_ms, led.toggle, name="asm-blink")
            self.blink.start()
        else:
            logprintf(1, "Status lamp GPIO %d unavailable", s.status_led.gpio)

        gnss = GnssWorker(s.gnss, self._serial_factory())
        if not gnss.start():
            return self._abort("GNSS worker did not start")
        self.gnss = gnss

        radio = RadioWorker(s.radio, self.config, self._serial_factory(), self._gpio_factory)
        if not radio.start():
            return self._abort("Radio worker did not start")
        self.radio = radio

        inout = InOutWorker(s.io, self._i2c_factory(s.io.i2c_bus))
        if not inout.start():
            return self._abort("In/Out worker did not start")
        self.inout = inout

        display = self._display_factory(s)
        if not display.init():
            display.close()
            return self._abort("Display did not initialise")
        self.display = display

        self.engine = PageEngine(display, gnss=gnss, radio=radio, inout=inout)
        if not self.engine.push_page(self._page_factory()):
            return self._abort("Initial page did not load")

        logprintf(2, "Game machine started (address 0x%02X%02X)", self.config.address_high, self.config.address_low)
        return True

    def _abort(self, reason: str) -> bool:
        logprintf(0, "Startup failed: %s", reason)
        self._release()
        return False

    # --- page loop --------------------------------------------------------------

    def step(self) -> int:
        """One loop iteration; returns the sleep before the next one in ms."""

        engine = self.engine
        assert engine is not None

        if self.radio is not None:
            while True:
                message = self.radio.receive_message()
                if message is None:
                    break
                engine.record_radio_message(message)

        if self.inout is not None:
            while True:
                event = self.inout.get_key()
                if event is None:
                    break
                engine.dispatch_key(event.char, event.code)

        if not engine.process_pending():
            engine.tick()
        return engine.tick_interval()

    def _run(self) -> None:
        logprintf(2, "Supervisor: Started")
        while not self._stop.is_set():
            try:
                interval = self.step()
            except Exception as exc:
                logprintf(0, "Supervisor: page loop error: %s: %s", type(exc).__name__, exc)
                interval = DEFAULT_PERIODIC_MS
            self._stop.wait(interval / 1000.0)
        logprintf(2, "Supervisor: Terminated")

    def run_in_thread(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="asm-supervisor", daemon=True)
        self._thread.start()

    # --- shutdown -----------------------------------------------------------------

    def terminate(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.settings.join_timeout_s)
            if self._thread.is_alive():
                logprintf(1, "Supervisor thread did not stop within %.1f s", self.settings.join_timeout_s)
            self._thread = None
        self._release()

    def _release(self) -> None:
        timeout = self.settings.join_timeout_s
        if self.engine is not None:
            self.engine.shutdown()
            self.engine = None
        if self.display is not None:
            self.display.close()
            self.display = None
        if self.inout is not None:
            self.inout.terminate(timeout)
            self.inout = None
        if self.radio is not None:
            self.radio.terminate(timeout)
            self.radio = None
        if self.gnss is not None:
            self.gnss.terminate(timeout)
            self.gnss = None
        if self.blink is not None:
            self.blink.stop(timeout)
            self.blink = None
        if self.status_led is not None:
            self.status_led.reset()
            self.status_led.close()
            self.status_led = None


def wait_for_quit(stream: TextIO) -> None:
    """Block until a ``quit`` line or end of input."""

    for line in stream:
        if line.strip() == "quit":
            return


def main(
    config_path: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    stdin: Optional[TextIO] = None,
    supervisor: Optional[Supervisor] = None,
) -> int:
    """Run until ``quit``; 0 on clean shutdown, 1 when startup failed."""

    sup = supervisor or Supervisor(settings or Settings(), config_path)
    if not sup.start():
        return 1

    sup.run_in_thread()
    try:
        wait_for_quit(stdin if stdin is not None else sys.stdin)
    except KeyboardInterrupt:
        pass
    sup.terminate()
    logprintf(2, "Game machine stopped")
    return 0


__all__ = ["Supervisor", "main", "wait_for_quit"]
