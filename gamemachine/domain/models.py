"""gamemachine/domain/models.py

Pydantic domain models shared by the workers and the page engine.
"""

from __future__ import annotations

from enum import Flag, IntEnum, auto

from pydantic import BaseModel, ConfigDict, Field


class AsmConfig(BaseModel):
    """Host settings read from ``airsoft/asm-config.cfg``.

    Attributes
    ----------
    address_high, address_low:
        LoRa address this unit programs into its radio module.
    """

    model_config = ConfigDict(frozen=True)

    address_high: int = Field(default=0, ge=0, le=0xFF)
    address_low: int = Field(default=0, ge=0, le=0xFF)


class KeyEvent(BaseModel):
    """Accepted keystroke: display character plus raw matrix index 0..15."""

    model_config = ConfigDict(frozen=True)

    char: str
    code: int = Field(ge=0, le=15)
    timestamp_ms: int = 0


class FixStatus(IntEnum):
    NONE = 0
    EST = 1
    TIME_ONLY = 2
    STD = 3
    DGPS = 4
    RTK_FLOAT = 5
    RTK_FIXED = 6
    PPS = 7


class FixField(Flag):
    """Per-field validity bits of a :class:`GpsFix`."""

    NONE = 0
    STATUS = auto()
    DATE = auto()
    TIME = auto()
    LOCATION = auto()
    ALTITUDE = auto()
    GEOID_HEIGHT = auto()
    SPEED = auto()
    HEADING = auto()
    SATELLITES = auto()
    HDOP = auto()
    VDOP = auto()
    PDOP = auto()
    LAT_ERR = auto()
    LON_ERR = auto()
    ALT_ERR = auto()


class GpsFix(BaseModel):
    """Immutable GNSS snapshot published once per NMEA interval.

    Scaled integers avoid float drift between parse and format:

    * ``latitude``/``longitude`` in 1e-7 degrees (south/west negative)
    * ``altitude``, ``geoid_height`` and the ``*_err`` fields in centimetres
    * ``heading`` in centidegrees, ``speed`` in thousandths of a knot
    * ``hdop``/``vdop``/``pdop`` multiplied by 1000
    * ``milliseconds`` is always a multiple of ten (NMEA carries centiseconds)

    ``valid`` tells which groups of fields carry data. Fields whose bit is
    clear hold zero.
    """

    model_config = ConfigDict(frozen=True)

    valid: FixField = FixField.NONE
    status: FixStatus = FixStatus.NONE

    year: int = 0
    month: int = 0
    day: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    milliseconds: int = 0

    latitude: int = 0
    longitude: int = 0
    altitude: int = 0
    geoid_height: int = 0
    speed: int = 0
    heading: int = 0
    satellites: int = 0
    hdop: int = 0
    vdop: int = 0
    pdop: int = 0
    lat_err: int = 0
    lon_err: int = 0
    alt_err: int = 0

    def has(self, field: FixField) -> bool:
        return (self.valid & field) == field

    @property
    def latitude_deg(self) -> float:
        return self.latitude / 1e7

    @property
    def longitude_deg(self) -> float:
        return self.longitude / 1e7


class SatelliteInfo(BaseModel):
    """One GSV satellite entry."""

    id: int
    elevation: int = 0
    azimuth: int = 0
    snr: int = 0
    tracked: bool = False


class NmeaStatistics(BaseModel):
    chars: int = 0
    ok: int = 0
    errors: int = 0
