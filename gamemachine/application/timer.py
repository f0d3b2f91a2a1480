"""gamemachine/application/timer.py

Periodic callback on its own thread (status lamp heartbeat).
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from ..logging_utils import logprintf


class IntervalTimer:
    def __init__(self, interval_ms: int, callback: Callable[[], object], name: str = "asm-timer"):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.interval_ms = interval_ms
        self._callback = callback
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        interval = self.interval_ms / 1000.0
        while not self._stop.wait(interval):
            try:
                self._callback()
            except OSError as exc:
                logprintf(3, "%s: callback failed: %s", self._name, exc)
            self.ticks += 1


__all__ = ["IntervalTimer"]
