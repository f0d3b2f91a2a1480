"""
Configuration package for the game machine (hardware wiring and timings).
"""

from .settings import (
    DisplaySettings,
    GnssSettings,
    IoSettings,
    RadioSettings,
    Settings,
    StatusLedSettings,
)

__all__ = [
    "DisplaySettings",
    "GnssSettings",
    "IoSettings",
    "RadioSettings",
    "Settings",
    "StatusLedSettings",
]
