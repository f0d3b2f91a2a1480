"""gamemachine/ports/__init__.py

Hexagonal architecture ports (abstract interfaces).

The LoRa driver, the workers and the page engine only see these
contracts. Adapters in :mod:`gamemachine.adapters` provide the concrete
implementations; tests provide in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class SerialLinePort(Protocol):
    """Byte-oriented serial line.

    Concrete implementation: :class:`gamemachine.adapters.serial_backend.AsyncSerialBackend`.
    """

    @property
    def baudrate(self) -> int:  # pragma: no cover - structural
        """Configured line speed in bits per second."""

    @property
    def is_open(self) -> bool:  # pragma: no cover - structural
        """``True`` while the port is usable."""

    def start(
        self,
        port: str,
        baudrate: int = 9600,
        bytesize: int = 8,
        parity: str = "N",
        stopbits: int = 1,
    ) -> bool:  # pragma: no cover - structural
        """Open the port. Returns ``True`` on success, ``False`` otherwise."""

    def stop(self) -> None:  # pragma: no cover - structural
        """Close the port and stop any worker threads/loops."""

    def read(self, size: int, timeout: float = 0.1) -> bytes:  # pragma: no cover - structural
        """Read up to ``size`` bytes, returning early (short) on timeout."""

    def available(self) -> int:  # pragma: no cover - structural
        """Number of bytes already received and not yet read."""

    def write(self, data: bytes) -> int:  # pragma: no cover - structural
        """Queue ``data`` for transmission and return the number of bytes accepted."""

    def reset_input_buffer(self) -> None:  # pragma: no cover - structural
        """Discard every pending input byte."""


@runtime_checkable
class GpioLinePort(Protocol):
    """Single digital line.

    Concrete implementation: :class:`gamemachine.adapters.gpio.SysfsGpio`.
    """

    def open(self, direction: str = "out", level: int = 0) -> bool:  # pragma: no cover - structural
        """Export the line and set its direction (and initial level for outputs)."""

    def close(self) -> None:  # pragma: no cover - structural
        """Release the line."""

    def set(self) -> bool:  # pragma: no cover - structural
        """Drive the line high."""

    def reset(self) -> bool:  # pragma: no cover - structural
        """Drive the line low."""

    def toggle(self) -> bool:  # pragma: no cover - structural
        """Invert the current output level."""

    def read(self) -> Optional[int]:  # pragma: no cover - structural
        """Return 0/1, or ``None`` when the line cannot be read."""


@runtime_checkable
class I2cBusPort(Protocol):
    """Byte-wide access to I²C slaves on one bus.

    Concrete implementation: :class:`gamemachine.adapters.i2c.SmbusI2c`.
    ``lock`` serialises transactions of all devices sharing the bus.
    """

    lock: Any

    def open(self) -> bool:  # pragma: no cover - structural
        """Open the bus device."""

    def close(self) -> None:  # pragma: no cover - structural
        """Close the bus device."""

    def write_byte(self, address: int, value: int) -> bool:  # pragma: no cover - structural
        """Write one byte to the slave at ``address``."""

    def read_byte(self, address: int) -> Optional[int]:  # pragma: no cover - structural
        """Read one byte, or ``None`` on bus error."""


@runtime_checkable
class CharacterDisplayPort(Protocol):
    """Character LCD collaborator driven by the page engine.

    Concrete implementation: :class:`gamemachine.adapters.i2c_display.I2cCharacterDisplay`.
    """

    cols: int
    rows: int

    def init(self) -> bool:  # pragma: no cover - structural
        """Bring the controller up; ``False`` when the device does not answer."""

    def clear(self) -> None:  # pragma: no cover - structural
        """Blank the screen and home the cursor."""

    def set_cursor(self, col: int, row: int) -> None:  # pragma: no cover - structural
        """Move the write position."""

    def write(self, text: str) -> None:  # pragma: no cover - structural
        """Write characters at the cursor."""

    def backlight(self, on: bool) -> None:  # pragma: no cover - structural
        """Switch the backlight."""

    def display(self, on: bool) -> None:  # pragma: no cover - structural
        """Switch the visible output without losing contents."""

    def close(self) -> None:  # pragma: no cover - structural
        """Release the device."""


__all__ = [
    "SerialLinePort",
    "GpioLinePort",
    "I2cBusPort",
    "CharacterDisplayPort",
]
