from __future__ import annotations

import time

from fakes import FakeSerial

from config import GnssSettings
from gamemachine.application.gnss import GnssWorker
from gamemachine.application.nmea import checksum


def _nmea(body: str) -> bytes:
    return f"${body}*{checksum(body):02X}\r\n".encode("ascii")


RMC = _nmea("GPRMC,123519.00,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W")


def test_poll_feeds_parser() -> None:
    serial = FakeSerial()
    worker = GnssWorker(GnssSettings(), serial)

    assert worker.poll() == 0
    assert worker.fix() is None

    serial.feed(RMC)
    assert worker.poll() == 1
    fix = worker.fix()
    assert fix is not None
    assert fix.latitude == 481_173_000
    assert worker.statistics().ok == 1
    assert serial.available() == 0


def test_poll_drain_is_bounded() -> None:
    serial = FakeSerial()
    worker = GnssWorker(GnssSettings(max_drain=10), serial)

    serial.feed(RMC)
    assert worker.poll() == 0
    assert serial.available() == len(RMC) - 10

    while serial.available():
        worker.poll()
    assert worker.fix() is not None


def test_start_fails_when_port_cannot_open() -> None:
    worker = GnssWorker(GnssSettings(), FakeSerial(start_ok=False))
    assert worker.start() is False


def test_worker_thread_publishes_fix() -> None:
    serial = FakeSerial()
    worker = GnssWorker(GnssSettings(loop_ms=5, port="/dev/ttyS3"), serial)
    assert worker.start()
    try:
        assert serial.port == "/dev/ttyS3"
        serial.feed(RMC)
        deadline = time.monotonic() + 2.0
        while worker.fix() is None and time.monotonic() < deadline:
            time.sleep(0.01)
        assert worker.fix() is not None
    finally:
        assert worker.terminate(2.0)
    assert not serial.is_open


def test_satellites_from_gsv() -> None:
    serial = FakeSerial()
    worker = GnssWorker(GnssSettings(), serial)
    assert worker.satellites() == []

    serial.feed(_nmea("GPGSV,1,1,02,01,40,083,46,02,17,308,"))
    worker.poll()

    sats = worker.satellites()
    assert [(s.id, s.snr, s.tracked) for s in sats] == [(1, 46, True), (2, 0, False)]
    sats.clear()
    assert len(worker.satellites()) == 2
