"""gamemachine/adapters/gpio.py

Single digital line through the Linux sysfs GPIO interface.

Lines are numbered the Rockchip way: ``bank * 32 + group * 8 + pin`` with
banks 0..4, groups A..D and pins 0..7. The sysfs root is a constructor
argument so tests can point it at a temporary directory.
"""

from __future__ import annotations

import os
from typing import Callable, Optional

from ..constants import SYSFS_GPIO_ROOT
from ..logging_utils import logprintf

BANK_MAX = 4
GROUP_A, GROUP_B, GROUP_C, GROUP_D = range(4)
PIN_MAX = 7

INPUT = "in"
OUTPUT = "out"


def calculate_gpio_id(bank: int, group: int, pin: int) -> int:
    if not 0 <= bank <= BANK_MAX:
        raise ValueError(f"GPIO bank out of range: {bank}")
    if not GROUP_A <= group <= GROUP_D:
        raise ValueError(f"GPIO group out of range: {group}")
    if not 0 <= pin <= PIN_MAX:
        raise ValueError(f"GPIO pin out of range: {pin}")
    return bank * 32 + group * 8 + pin


class SysfsGpio:
    """One exported sysfs GPIO line."""

    def __init__(self, gpio_id: int, root: str = SYSFS_GPIO_ROOT):
        self.gpio_id = gpio_id
        self._root = root
        self._direction = INPUT
        self._level = 0
        self._is_open = False

    @classmethod
    def from_bank(cls, bank: int, group: int, pin: int, root: str = SYSFS_GPIO_ROOT) -> "SysfsGpio":
        return cls(calculate_gpio_id(bank, group, pin), root=root)

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def direction(self) -> str:
        return self._direction

    def _line_path(self, name: str) -> str:
        return os.path.join(self._root, f"gpio{self.gpio_id}", name)

    def _write(self, path: str, text: str) -> bool:
        try:
            with open(path, "w", encoding="ascii") as fh:
                fh.write(text)
            return True
        except OSError as exc:
            logprintf(0, "GPIO %d: cannot write %s: %s", self.gpio_id, path, exc)
            return False

    def open(self, direction: str = OUTPUT, level: int = 0) -> bool:
        if self._is_open:
            return False
        if direction not in (INPUT, OUTPUT):
            raise ValueError(f"invalid GPIO direction: {direction!r}")

        # Already exported lines (left over by a crashed run) keep working.
        if not os.path.isdir(os.path.join(self._root, f"gpio{self.gpio_id}")):
            if not self._write(os.path.join(self._root, "export"), str(self.gpio_id)):
                return False

        if not self._write(self._line_path("direction"), direction):
            return False
        self._direction = direction
        self._is_open = True

        if direction == OUTPUT:
            return self._drive(1 if level else 0)
        return True

    def close(self) -> None:
        if not self._is_open:
            return
        self._is_open = False
        self._write(os.path.join(self._root, "unexport"), str(self.gpio_id))

    def _drive(self, level: int) -> bool:
        if not self._is_open or self._direction != OUTPUT:
            return False
        if not self._write(self._line_path("value"), "1" if level else "0"):
            return False
        self._level = level
        return True

    def set(self) -> bool:
        return self._drive(1)

    def reset(self) -> bool:
        return self._drive(0)

    def toggle(self) -> bool:
        return self._drive(0 if self._level else 1)

    def read(self) -> Optional[int]:
        if not self._is_open:
            return None
        if self._direction == OUTPUT:
            return self._level
        try:
            with open(self._line_path("value"), "r", encoding="ascii") as fh:
                text = fh.read().strip()
        except OSError as exc:
            logprintf(3, "GPIO %d: read failed: %s", self.gpio_id, exc)
            return None
        return 1 if text == "1" else 0


def sysfs_gpio_factory(root: str = SYSFS_GPIO_ROOT) -> Callable[[int], SysfsGpio]:
    """Factory handed to the workers so they never build lines themselves."""

    return lambda gpio_id: SysfsGpio(gpio_id, root=root)


__all__ = [
    "SysfsGpio",
    "calculate_gpio_id",
    "sysfs_gpio_factory",
    "INPUT",
    "OUTPUT",
    "GROUP_A",
    "GROUP_B",
    "GROUP_C",
    "GROUP_D",
]
