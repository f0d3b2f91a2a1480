"""gamemachine/application/__init__.py

Application services: configuration loading, the three hardware workers,
the NMEA parser and the display page engine.
"""

from .config_loader import ConfigError, load_config
from .display_engine import DisplayPage, PageEngine
from .gnss import GnssWorker
from .inout import InOutWorker
from .keypad import KeyPad
from .nmea import NmeaParser
from .pages import MainPage, StatusPage
from .radio import RadioWorker
from .timer import IntervalTimer

__all__ = [
    "ConfigError",
    "load_config",
    "DisplayPage",
    "PageEngine",
    "GnssWorker",
    "InOutWorker",
    "KeyPad",
    "NmeaParser",
    "MainPage",
    "StatusPage",
    "RadioWorker",
    "IntervalTimer",
]
