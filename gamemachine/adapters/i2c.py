"""gamemachine/adapters/i2c.py

Linux ``/dev/i2c-N`` access through :mod:`smbus2`.

The bus handle is opened once and kept until :meth:`SmbusI2c.close`.
Callers sharing a bus serialise through :attr:`SmbusI2c.lock`.
"""

from __future__ import annotations

import threading
from typing import Optional

from smbus2 import SMBus

from ..logging_utils import logprintf


class SmbusI2c:
    """Byte-wide I²C master on one bus number."""

    def __init__(self, bus: int):
        self.bus_number = bus
        self.lock = threading.RLock()
        self._bus: Optional[SMBus] = None

    @property
    def is_open(self) -> bool:
        return self._bus is not None

    def open(self) -> bool:
        if self._bus is not None:
            return True
        try:
            self._bus = SMBus(self.bus_number)
        except (OSError, FileNotFoundError) as exc:
            logprintf(0, "Cannot open /dev/i2c-%d: %s", self.bus_number, exc)
            return False
        return True

    def close(self) -> None:
        if self._bus is None:
            return
        try:
            self._bus.close()
        finally:
            self._bus = None

    def write_byte(self, address: int, value: int) -> bool:
        if self._bus is None:
            return False
        try:
            self._bus.write_byte(address, value & 0xFF)
            return True
        except OSError as exc:
            logprintf(3, "i2c-%d 0x%02X write failed: %s", self.bus_number, address, exc)
            return False

    def read_byte(self, address: int) -> Optional[int]:
        if self._bus is None:
            return None
        try:
            return self._bus.read_byte(address)
        except OSError as exc:
            logprintf(3, "i2c-%d 0x%02X read failed: %s", self.bus_number, address, exc)
            return None


__all__ = ["SmbusI2c"]
