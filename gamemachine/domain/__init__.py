"""gamemachine/domain/__init__.py

Domain models for the game machine: radio registers, GNSS fixes,
keystrokes and host configuration.
"""

from .models import (
    AsmConfig,
    FixField,
    FixStatus,
    GpsFix,
    KeyEvent,
    NmeaStatistics,
    SatelliteInfo,
)
from .radio import (
    ModeType,
    ModuleInformation,
    Option,
    PacketLength,
    ProgramCommand,
    RadioConfiguration,
    RegisterAddress,
    Response,
    Speed,
    Status,
    TransmissionMode,
)

__all__ = [
    "AsmConfig",
    "FixField",
    "FixStatus",
    "GpsFix",
    "KeyEvent",
    "NmeaStatistics",
    "SatelliteInfo",
    "ModeType",
    "ModuleInformation",
    "Option",
    "PacketLength",
    "ProgramCommand",
    "RadioConfiguration",
    "RegisterAddress",
    "Response",
    "Speed",
    "Status",
    "TransmissionMode",
]
