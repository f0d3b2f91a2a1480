from __future__ import annotations

import io
import threading
from pathlib import Path

from fakes import E220Responder, FakeDisplay, FakeI2cBus, FakeKeypadMatrix, FakeSerial, GpioBank

from config import Settings, StatusLedSettings
from gamemachine.application.display_engine import DisplayPage
from gamemachine.application.pages import TITLE, MainPage
from gamemachine.domain import KeyEvent, RadioConfiguration
from gamemachine.runtime import Supervisor, main, wait_for_quit


class Rig:
    """Every piece of hardware the supervisor asks for, as fakes."""

    def __init__(self, serial_ok=(True, True), bus_ok: bool = True, display_ok: bool = True):
        responder = E220Responder(RadioConfiguration(address_high=0x12, address_low=0x34).to_bytes())
        self.gnss_serial = FakeSerial(start_ok=serial_ok[0])
        self.radio_serial = FakeSerial(responder=responder, start_ok=serial_ok[1])
        self._serials = [self.gnss_serial, self.radio_serial]
        self.gpio = GpioBank()
        self.bus = FakeI2cBus(open_ok=bus_ok)
        self.bus.keypads[0x23] = FakeKeypadMatrix()
        self.display = FakeDisplay(init_ok=display_ok)
        self.started: list[str] = []

    def serial(self) -> FakeSerial:
        return self._serials.pop(0)

    def i2c(self, _bus: int) -> FakeI2cBus:
        return self.bus

    def supervisor(self, config_path: Path, join_timeout_s: float = 2.0, page_factory=MainPage) -> Supervisor:
        settings = Settings(status_led=StatusLedSettings(blink_ms=10), join_timeout_s=join_timeout_s)
        return Supervisor(
            settings,
            str(config_path),
            serial_factory=self.serial,
            gpio_factory=self.gpio,
            i2c_factory=self.i2c,
            display_factory=lambda _s: self.display,
            page_factory=page_factory,
        )


def test_start_brings_everything_up(asm_cfg) -> None:
    rig = Rig()
    sup = rig.supervisor(asm_cfg)
    assert sup.start()
    try:
        assert (sup.config.address_high, sup.config.address_low) == (0x12, 0x34)
        assert rig.gnss_serial.is_open and rig.radio_serial.is_open
        assert rig.bus.opened
        assert rig.gpio.lines[52].opened
        assert isinstance(sup.engine.current_page, MainPage)
        assert rig.display.line(0) == TITLE
    finally:
        sup.terminate()

    assert sup.engine is None
    assert rig.display.closed
    assert not rig.bus.opened
    assert not rig.gnss_serial.is_open and not rig.radio_serial.is_open
    led = rig.gpio.lines[52]
    assert led.closed and led.level == 0


def test_invalid_configuration_aborts_before_hardware(tmp_path) -> None:
    cfg_dir = tmp_path / "airsoft"
    cfg_dir.mkdir()
    cfg = cfg_dir / "asm-config.cfg"
    cfg.write_text("address_high=0x1FF\n", encoding="utf-8")

    rig = Rig()
    sup = rig.supervisor(cfg)
    assert sup.start() is False
    assert rig.gpio.lines == {}
    assert len(rig._serials) == 2


def test_gnss_failure_releases_status_lamp(asm_cfg) -> None:
    rig = Rig(serial_ok=(False, True))
    sup = rig.supervisor(asm_cfg)
    assert sup.start() is False
    assert rig.gpio.lines[52].closed
    assert sup.blink is None
    assert len(rig._serials) == 1


def test_radio_failure_stops_gnss(asm_cfg) -> None:
    rig = Rig(serial_ok=(True, False))
    sup = rig.supervisor(asm_cfg)
    assert sup.start() is False
    assert sup.gnss is None
    assert not rig.gnss_serial.is_open
    assert rig.bus.opened is False


def test_display_failure_releases_workers(asm_cfg) -> None:
    rig = Rig(display_ok=False)
    sup = rig.supervisor(asm_cfg)
    assert sup.start() is False
    assert rig.display.closed
    assert not rig.bus.opened
    assert not rig.radio_serial.is_open
    assert sup.engine is None


def test_step_drains_radio_and_keys(asm_cfg, monkeypatch) -> None:
    rig = Rig()
    sup = rig.supervisor(asm_cfg)
    assert sup.start()
    try:
        messages = [b"HIT", b"KILL"]
        keys = [KeyEvent(char="7", code=2), KeyEvent(char="B", code=7)]
        monkeypatch.setattr(sup.radio, "receive_message", lambda: messages.pop(0) if messages else None)
        monkeypatch.setattr(sup.inout, "get_key", lambda: keys.pop(0) if keys else None)

        assert sup.step() == 100
        assert sup.engine.radio_messages() == [b"HIT", b"KILL"]
        assert keys == []
        # 'B' parked the status page; the same iteration applies it instead of ticking
        assert sup.engine.current_page.name == "Status Page"
        assert not sup.engine.has_pending
    finally:
        sup.terminate()


def test_wait_for_quit_stops_on_quit_or_eof() -> None:
    stream = io.StringIO("hello\nquit\nafter\n")
    wait_for_quit(stream)
    assert stream.readline() == "after\n"
    wait_for_quit(io.StringIO(""))


def test_main_runs_until_quit(asm_cfg) -> None:
    rig = Rig()
    sup = rig.supervisor(asm_cfg)
    assert main(stdin=io.StringIO("quit\n"), supervisor=sup) == 0
    assert rig.display.closed


def test_main_reports_startup_failure(asm_cfg) -> None:
    rig = Rig(bus_ok=False)
    sup = rig.supervisor(asm_cfg)
    assert main(stdin=io.StringIO("quit\n"), supervisor=sup) == 1


def _record_logs(monkeypatch) -> list[tuple[int, str]]:
    lines: list[tuple[int, str]] = []
    monkeypatch.setattr(
        "gamemachine.runtime.logprintf",
        lambda level, fmt, *args: lines.append((level, fmt % args if args else fmt)),
    )
    return lines


class FlakyPage(DisplayPage):
    """Raises on its second tick, then behaves."""

    name = "Flaky Page"

    def __init__(self) -> None:
        super().__init__()
        self.ticks = 0
        self.keys: list[tuple[str, int]] = []
        self.handled = threading.Event()

    def tick(self) -> None:
        self.ticks += 1
        if self.ticks == 2:
            raise ValueError("bad frame")

    def key_handle(self, char: str, code: int) -> None:
        self.keys.append((char, code))
        self.handled.set()

    def periodic_time(self) -> int:
        return 5


def test_page_error_keeps_loop_running(asm_cfg, monkeypatch) -> None:
    rig = Rig()
    page = FlakyPage()
    sup = rig.supervisor(asm_cfg, page_factory=lambda: page)
    assert sup.start()
    keys = [KeyEvent(char="5", code=5)]
    monkeypatch.setattr(sup.inout, "get_key", lambda: keys.pop(0) if keys and page.ticks >= 2 else None)
    lines = _record_logs(monkeypatch)
    try:
        sup.run_in_thread()
        assert page.handled.wait(5.0)
        assert sup._thread.is_alive()
        assert page.keys == [("5", 5)]
        assert (0, "Supervisor: page loop error: ValueError: bad frame") in lines
    finally:
        sup.terminate()
    assert rig.display.closed


def test_stuck_page_loop_does_not_block_release(asm_cfg, monkeypatch) -> None:
    rig = Rig()
    sup = rig.supervisor(asm_cfg, join_timeout_s=0.2)
    assert sup.start()
    never = threading.Event()
    monkeypatch.setattr(sup, "_run", lambda: never.wait(10.0))
    lines = _record_logs(monkeypatch)
    try:
        sup.run_in_thread()
        sup.terminate()
        assert (1, "Supervisor thread did not stop within 0.2 s") in lines
        assert sup.engine is None
        assert rig.display.closed
        assert not rig.bus.opened
        assert not rig.radio_serial.is_open and not rig.gnss_serial.is_open
        assert rig.gpio.lines[52].closed
    finally:
        never.set()


def test_release_runs_in_reverse_start_order(asm_cfg, monkeypatch) -> None:
    rig = Rig()
    sup = rig.supervisor(asm_cfg)
    assert sup.start()
    order: list[str] = []

    def track(obj, attr: str, label: str) -> None:
        original = getattr(obj, attr)

        def wrapper(*args, **kwargs):
            order.append(label)
            return original(*args, **kwargs)

        monkeypatch.setattr(obj, attr, wrapper)

    track(sup.engine, "shutdown", "pages")
    track(sup.display, "close", "display")
    track(sup.inout, "terminate", "inout")
    track(sup.radio, "terminate", "radio")
    track(sup.gnss, "terminate", "gnss")
    track(sup.blink, "stop", "blink")
    track(rig.gpio.lines[52], "close", "status-lamp")

    sup.run_in_thread()
    sup.terminate()

    assert order == ["pages", "display", "inout", "radio", "gnss", "blink", "status-lamp"]
