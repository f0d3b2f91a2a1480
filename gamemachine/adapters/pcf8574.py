"""gamemachine/adapters/pcf8574.py

PCF8574 8-bit quasi-bidirectional I/O expander.

The chip has no direction register: a line written high is weakly pulled
up and can be read back as an input, a line written low sinks current.
The last written byte is cached so single-pin writes keep the other
seven lines untouched.
"""

from __future__ import annotations

from typing import Optional

from ..ports import I2cBusPort

INITIAL_VALUE = 0xFF

PCF8574_OK = 0x00
PCF8574_PIN_ERROR = 0x81
PCF8574_I2C_ERROR = 0x82


class PCF8574:
    def __init__(self, bus: I2cBusPort, address: int = 0x20):
        self._bus = bus
        self.address = address
        self._data_out = INITIAL_VALUE
        self._data_in = 0
        self._error = PCF8574_OK

    @property
    def value_out(self) -> int:
        return self._data_out

    @property
    def value_in(self) -> int:
        return self._data_in

    def last_error(self) -> int:
        err, self._error = self._error, PCF8574_OK
        return err

    def begin(self, value: int = INITIAL_VALUE) -> bool:
        return self.write8(value)

    def write8(self, value: int) -> bool:
        self._data_out = value & 0xFF
        ok = self._bus.write_byte(self.address, self._data_out)
        self._error = PCF8574_OK if ok else PCF8574_I2C_ERROR
        return ok

    def read8(self) -> Optional[int]:
        value = self._bus.read_byte(self.address)
        if value is None:
            self._error = PCF8574_I2C_ERROR
            return None
        self._data_in = value
        self._error = PCF8574_OK
        return value

    def write(self, pin: int, value: bool) -> bool:
        if not 0 <= pin <= 7:
            self._error = PCF8574_PIN_ERROR
            return False
        if value:
            data = self._data_out | (1 << pin)
        else:
            data = self._data_out & ~(1 << pin)
        return self.write8(data)

    def read(self, pin: int) -> Optional[int]:
        if not 0 <= pin <= 7:
            self._error = PCF8574_PIN_ERROR
            return None
        value = self.read8()
        if value is None:
            return None
        return 1 if value & (1 << pin) else 0

    def toggle(self, pin: int) -> bool:
        if not 0 <= pin <= 7:
            self._error = PCF8574_PIN_ERROR
            return False
        return self.write8(self._data_out ^ (1 << pin))


__all__ = ["PCF8574", "PCF8574_OK", "PCF8574_PIN_ERROR", "PCF8574_I2C_ERROR"]
