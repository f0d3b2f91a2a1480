"""gamemachine/adapters/__init__.py

Adapters that connect the workers to the hardware: serial lines, sysfs
GPIO, the I²C bus and the devices hanging off it, and the LoRa module.
"""

from .ebyte_e220 import EbyteLoraE220  # noqa: F401
from .gpio import SysfsGpio, calculate_gpio_id  # noqa: F401
from .i2c import SmbusI2c  # noqa: F401
from .i2c_display import I2cCharacterDisplay  # noqa: F401
from .pcf8574 import PCF8574  # noqa: F401
from .serial_backend import AsyncSerialBackend, _AsyncSerialProtocol  # noqa: F401

__all__ = [
    "AsyncSerialBackend",
    "_AsyncSerialProtocol",
    "EbyteLoraE220",
    "I2cCharacterDisplay",
    "PCF8574",
    "SmbusI2c",
    "SysfsGpio",
    "calculate_gpio_id",
]
