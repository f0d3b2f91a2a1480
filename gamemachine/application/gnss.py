"""gamemachine/application/gnss.py

GNSS worker: drains the receiver's UART into :class:`NmeaParser` and
keeps the latest published fix for readers on other threads.
"""

from __future__ import annotations

import threading
from typing import Optional

from config import GnssSettings

from ..domain import GpsFix, NmeaStatistics, SatelliteInfo
from ..logging_utils import logprintf
from ..ports import SerialLinePort
from .nmea import NmeaParser


class GnssWorker:
    def __init__(self, settings: GnssSettings, serial: SerialLinePort):
        self._settings = settings
        self._serial = serial
        self._parser = NmeaParser()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def parser(self) -> NmeaParser:
        return self._parser

    def start(self) -> bool:
        s = self._settings
        if not self._serial.start(s.port, baudrate=s.baudrate):
            logprintf(0, "GNSS: cannot open %s", s.port)
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="asm-gnss", daemon=True)
        self._thread.start()
        return True

    def terminate(self, timeout: Optional[float] = None) -> bool:
        self._stop.set()
        joined = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            joined = not self._thread.is_alive()
            if not joined:
                logprintf(1, "GNSS: worker did not stop within %.1f s", timeout or 0.0)
            self._thread = None
        self._serial.stop()
        return joined

    # --- readers --------------------------------------------------------------

    def fix(self) -> Optional[GpsFix]:
        """Latest fix published by an RMC, or ``None`` before the first one."""

        return self._parser.fix

    def statistics(self) -> NmeaStatistics:
        with self._lock:
            return self._parser.statistics

    def satellites(self) -> list[SatelliteInfo]:
        with self._lock:
            return self._parser.satellites

    # --- worker loop ----------------------------------------------------------

    def poll(self) -> int:
        """Feed whatever is buffered (bounded); returns the number of new fixes."""

        pending = min(self._serial.available(), self._settings.max_drain)
        if pending <= 0:
            return 0
        data = self._serial.read(pending, 0.0)
        if not data:
            return 0
        with self._lock:
            return self._parser.feed(data)

    def _run(self) -> None:
        logprintf(2, "GNSS: Started")
        interval = self._settings.loop_ms / 1000.0
        while not self._stop.is_set():
            published = self.poll()
            if published:
                fix = self._parser.fix
                if fix is not None:
                    logprintf(3, "GNSS: fix status=%s lat=%d lon=%d", fix.status.name, fix.latitude, fix.longitude)
            self._stop.wait(interval)
        logprintf(2, "GNSS: Terminated")


__all__ = ["GnssWorker"]
