"""gamemachine/application/nmea.py

Streaming NMEA 0183 parser with explicit per-interval merging.

Characters are fed one at a time. A sentence contributes to the current
interval only after its checksum matched; the merged fix becomes visible
when the interval's last sentence (RMC) arrives. Each field group carries
a validity bit in :class:`~gamemachine.domain.FixField`, so a reader can
tell which values were actually reported since the previous RMC.

Recognised sentences: GGA, GLL, GSA, GST, GSV, RMC, VTG, ZDA, with any
two-character talker id. Proprietary sentences (``$P`` + three-character
manufacturer id) are recognised as such and dropped.
"""

from __future__ import annotations

import calendar
import re
from bisect import bisect_left
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from ..domain import FixField, FixStatus, GpsFix, NmeaStatistics, SatelliteInfo

SENTENCE_TABLE = ("GGA", "GLL", "GSA", "GST", "GSV", "RMC", "VTG", "ZDA")
LAST_SENTENCE_IN_INTERVAL = "RMC"
MAX_SATELLITES = 32
_MAX_HEADER = 7

_FIELD_ATTRS: dict[FixField, tuple[str, ...]] = {
    FixField.STATUS: ("status",),
    FixField.DATE: ("year", "month", "day"),
    FixField.TIME: ("hours", "minutes", "seconds", "milliseconds"),
    FixField.LOCATION: ("latitude", "longitude"),
    FixField.ALTITUDE: ("altitude",),
    FixField.GEOID_HEIGHT: ("geoid_height",),
    FixField.SPEED: ("speed",),
    FixField.HEADING: ("heading",),
    FixField.SATELLITES: ("satellites",),
    FixField.HDOP: ("hdop",),
    FixField.VDOP: ("vdop",),
    FixField.PDOP: ("pdop",),
    FixField.LAT_ERR: ("lat_err",),
    FixField.LON_ERR: ("lon_err",),
    FixField.ALT_ERR: ("alt_err",),
}

_STATUS_CHARS = {
    "1": FixStatus.STD,
    "A": FixStatus.STD,
    "0": FixStatus.NONE,
    "N": FixStatus.NONE,
    "V": FixStatus.NONE,
    "2": FixStatus.DGPS,
    "D": FixStatus.DGPS,
    "3": FixStatus.PPS,
    "4": FixStatus.RTK_FIXED,
    "5": FixStatus.RTK_FLOAT,
    "6": FixStatus.EST,
    "E": FixStatus.EST,
}

_GGA_QUALITY = {
    FixStatus.NONE: "0",
    FixStatus.STD: "1",
    FixStatus.DGPS: "2",
    FixStatus.PPS: "3",
    FixStatus.RTK_FIXED: "4",
    FixStatus.RTK_FLOAT: "5",
    FixStatus.EST: "6",
}

_DECIMAL_RE = re.compile(r"^(-?)(\d*)(?:\.(\d*))?$")


class RxState(Enum):
    IDLE = 0
    HEADER = 1
    DATA = 2
    CRC = 3


class FieldError(ValueError):
    """A field is present but outside its legal range."""


def checksum(body: str) -> int:
    """XOR of every character between ``$`` and ``*``."""

    crc = 0
    for ch in body:
        crc ^= ord(ch)
    return crc


def days_in_month(month: int, year: int) -> int:
    return calendar.monthrange(year, month)[1]


# --- field decoders ---------------------------------------------------------


def parse_scaled(text: str, decimals: int, *, signed: bool = False) -> int:
    """``"12.345"`` with ``decimals=3`` gives ``12345``; extra digits are truncated."""

    m = _DECIMAL_RE.match(text)
    if m is None or (not m.group(2) and not m.group(3)):
        raise FieldError(f"not a decimal: {text!r}")
    if m.group(1) and not signed:
        raise FieldError(f"negative value not allowed: {text!r}")
    whole = int(m.group(2) or "0")
    frac = (m.group(3) or "")[:decimals].ljust(decimals, "0")
    value = whole * 10**decimals + (int(frac) if decimals else 0)
    return -value if m.group(1) else value


def parse_int(text: str) -> int:
    if not text.isdigit():
        raise FieldError(f"not an integer: {text!r}")
    return int(text)


def parse_time(text: str) -> tuple[int, int, int, int]:
    """``hhmmss[.sss]`` into hours, minutes, seconds, milliseconds (digits past the third are dropped)."""

    whole, _, frac = text.partition(".")
    if len(whole) != 6 or not whole.isdigit() or (frac and not frac.isdigit()):
        raise FieldError(f"bad time: {text!r}")
    hours, minutes, seconds = int(whole[0:2]), int(whole[2:4]), int(whole[4:6])
    if hours > 23 or minutes > 59 or seconds > 59:
        raise FieldError(f"time out of range: {text!r}")
    millis = int(frac[:3].ljust(3, "0")) if frac else 0
    return hours, minutes, seconds, millis


def _check_date(day: int, month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise FieldError(f"month out of range: {month}")
    if not 1 <= day <= days_in_month(month, year):
        raise FieldError(f"day out of range: {day}/{month}/{year}")


def parse_ddmmyy(text: str) -> tuple[int, int, int]:
    if len(text) != 6 or not text.isdigit():
        raise FieldError(f"bad date: {text!r}")
    day, month, year = int(text[0:2]), int(text[2:4]), 2000 + int(text[4:6])
    _check_date(day, month, year)
    return year, month, day


def parse_dddmm(text: str, max_degrees: int) -> int:
    """``[d]ddmm.mmmmmm`` into 1e-7 degrees (unsigned)."""

    whole, _, frac = text.partition(".")
    if len(whole) < 3 or not whole.isdigit() or (frac and not frac.isdigit()):
        raise FieldError(f"bad coordinate: {text!r}")
    degrees = int(whole[:-2])
    minutes = int(whole[-2:])
    if minutes >= 60:
        raise FieldError(f"minutes out of range: {text!r}")
    minutes_e6 = minutes * 1_000_000 + int(frac[:6].ljust(6, "0"))
    value = degrees * 10_000_000 + (minutes_e6 + 3) // 6
    if value > max_degrees * 10_000_000:
        raise FieldError(f"coordinate out of range: {text!r}")
    return value


def format_dddmm(value_e7: int, degree_digits: int) -> str:
    value_e7 = abs(value_e7)
    degrees, rem = divmod(value_e7, 10_000_000)
    minutes_e6 = rem * 6
    minutes, frac = divmod(minutes_e6, 1_000_000)
    return f"{degrees:0{degree_digits}d}{minutes:02d}.{frac:06d}"


def format_scaled(value: int, decimals: int) -> str:
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    return f"{sign}{whole}.{frac:0{decimals}d}" if decimals else f"{sign}{whole}"


# --- sentence-local fix -----------------------------------------------------


class _SentenceFix:
    """Values decoded from one sentence, not yet checksum-approved."""

    __slots__ = ("values", "valid", "lat", "lat_sign", "lon", "lon_sign", "satellites")

    def __init__(self) -> None:
        self.values: dict[str, object] = {}
        self.valid = FixField.NONE
        self.lat: Optional[int] = None
        self.lat_sign = 1
        self.lon: Optional[int] = None
        self.lon_sign = 1
        self.satellites: list[SatelliteInfo] = []

    def put(self, field: FixField, **values: object) -> None:
        self.values.update(values)
        self.valid |= field

    def close_location(self) -> None:
        if self.lat is not None and self.lon is not None:
            self.put(
                FixField.LOCATION,
                latitude=self.lat * self.lat_sign,
                longitude=self.lon * self.lon_sign,
            )


class NmeaParser:
    """Character-level NMEA state machine.

    ``on_fix`` (optional) is called with every published :class:`GpsFix`.
    """

    def __init__(self, on_fix: Optional[Callable[[GpsFix], None]] = None):
        self._on_fix = on_fix
        self._stats = NmeaStatistics()
        self._satellites: list[SatelliteInfo] = []
        self._fix: Optional[GpsFix] = None
        self._reset_interval()
        self._reset_sentence()
        self._state = RxState.IDLE

    # --- public API -------------------------------------------------------

    @property
    def state(self) -> RxState:
        return self._state

    @property
    def fix(self) -> Optional[GpsFix]:
        """Last published fix, ``None`` until the first complete interval."""

        return self._fix

    @property
    def statistics(self) -> NmeaStatistics:
        return self._stats.model_copy()

    @property
    def satellites(self) -> list[SatelliteInfo]:
        return list(self._satellites)

    @property
    def talker_id(self) -> str:
        return self._talker

    def feed(self, data: Union[bytes, str, Iterable[int]]) -> int:
        """Feed a chunk; returns how many fixes were published."""

        if isinstance(data, str):
            chars: Iterable[str] = data
        else:
            chars = (chr(b) for b in data)
        return sum(1 for ch in chars if self.handle(ch))

    def handle(self, ch: str) -> bool:
        """Process one character; ``True`` when it completed an interval."""

        self._stats.chars += 1

        if ch == "$":
            self._begin_sentence()
            return False

        if self._state == RxState.HEADER:
            self._crc ^= ord(ch)
            self._handle_header(ch)
        elif self._state == RxState.DATA:
            if ch == "*":
                self._end_field()
                if self._state == RxState.DATA:
                    self._state = RxState.CRC
                    self._crc_chars = ""
            elif " " <= ch <= "~":
                self._crc ^= ord(ch)
                if ch == ",":
                    self._end_field()
                else:
                    self._field.append(ch)
            else:
                self._drop_sentence()
        elif self._state == RxState.CRC:
            return self._handle_crc(ch)
        return False

    # --- state machine ----------------------------------------------------

    def _reset_interval(self) -> None:
        self._acc_values: dict[str, object] = {}
        self._acc_valid = FixField.NONE

    def _reset_sentence(self) -> None:
        self._crc = 0
        self._header: list[str] = []
        self._talker = ""
        self._tag = ""
        self._proprietary = False
        self._field: list[str] = []
        self._field_index = 0
        self._crc_chars = ""
        self._sentence = _SentenceFix()

    def _begin_sentence(self) -> None:
        self._reset_sentence()
        self._state = RxState.HEADER

    def _drop_sentence(self) -> None:
        self._sentence = _SentenceFix()
        self._state = RxState.IDLE

    def _handle_header(self, ch: str) -> None:
        if ch != ",":
            self._header.append(ch)
            if len(self._header) > _MAX_HEADER:
                self._drop_sentence()
            return

        header = "".join(self._header)
        if header.startswith("P"):
            self._proprietary = True
            self._talker, tag = header[1:4], header[4:]
        else:
            self._talker, tag = header[:2], header[2:]

        i = bisect_left(SENTENCE_TABLE, tag)
        if self._proprietary or i == len(SENTENCE_TABLE) or SENTENCE_TABLE[i] != tag:
            self._drop_sentence()
            return

        self._tag = tag
        self._field_index = 1
        self._state = RxState.DATA

    def _end_field(self) -> None:
        text = "".join(self._field)
        self._field = []
        try:
            self._parse_field(self._field_index, text)
        except FieldError:
            self._drop_sentence()
            return
        self._field_index += 1

    def _handle_crc(self, ch: str) -> bool:
        self._crc_chars += ch
        try:
            nibble = int(ch, 16)
        except ValueError:
            nibble = -1

        expected = (self._crc >> 4) if len(self._crc_chars) == 1 else (self._crc & 0x0F)
        if nibble != expected:
            self._stats.errors += 1
            self._drop_sentence()
            return False
        if len(self._crc_chars) < 2:
            return False

        self._stats.ok += 1
        self._state = RxState.IDLE
        return self._commit()

    def _commit(self) -> bool:
        sentence = self._sentence
        self._sentence = _SentenceFix()

        if self._tag == "GSV":
            self._commit_satellites(sentence.satellites)
            return False

        for flag, attrs in _FIELD_ATTRS.items():
            if flag in sentence.valid:
                for attr in attrs:
                    self._acc_values[attr] = sentence.values[attr]
                self._acc_valid |= flag

        if self._tag != LAST_SENTENCE_IN_INTERVAL:
            return False

        fix = GpsFix(valid=self._acc_valid, **self._acc_values)
        self._reset_interval()
        self._fix = fix
        if self._on_fix is not None:
            self._on_fix(fix)
        return True

    def _commit_satellites(self, entries: list[SatelliteInfo]) -> None:
        if self._gsv_message == 1:
            self._satellites = []
        room = MAX_SATELLITES - len(self._satellites)
        self._satellites.extend(entries[:room])

    # --- per-sentence field maps -----------------------------------------

    def _parse_field(self, index: int, text: str) -> None:
        parser = getattr(self, f"_parse_{self._tag.lower()}")
        parser(index, text)

    def _location(self, offset: int, index: int, text: str) -> None:
        """Four consecutive fields from ``offset``: lat, N/S, lon, E/W."""

        s = self._sentence
        pos = index - offset
        if not text:
            return
        if pos == 0:
            s.lat = parse_dddmm(text, 90)
        elif pos == 1:
            if text not in ("N", "S"):
                raise FieldError(f"bad hemisphere: {text!r}")
            s.lat_sign = -1 if text == "S" else 1
        elif pos == 2:
            s.lon = parse_dddmm(text, 180)
        elif pos == 3:
            if text not in ("E", "W"):
                raise FieldError(f"bad hemisphere: {text!r}")
            s.lon_sign = -1 if text == "W" else 1
            s.close_location()

    def _time(self, text: str) -> None:
        if text:
            h, m, sec, ms = parse_time(text)
            self._sentence.put(FixField.TIME, hours=h, minutes=m, seconds=sec, milliseconds=ms)

    def _status(self, text: str) -> None:
        if not text:
            return
        status = _STATUS_CHARS.get(text[0])
        if status is None or len(text) > 1:
            raise FieldError(f"bad status: {text!r}")
        self._sentence.put(FixField.STATUS, status=status)

    def _scaled(self, field: FixField, attr: str, text: str, decimals: int, signed: bool = False) -> None:
        if text:
            self._sentence.put(field, **{attr: parse_scaled(text, decimals, signed=signed)})

    def _parse_gga(self, index: int, text: str) -> None:
        if index == 1:
            self._time(text)
        elif 2 <= index <= 5:
            self._location(2, index, text)
        elif index == 6:
            self._status(text)
        elif index == 7 and text:
            self._sentence.put(FixField.SATELLITES, satellites=parse_int(text))
        elif index == 8:
            self._scaled(FixField.HDOP, "hdop", text, 3)
        elif index == 9:
            self._scaled(FixField.ALTITUDE, "altitude", text, 2, signed=True)
        elif index == 11:
            self._scaled(FixField.GEOID_HEIGHT, "geoid_height", text, 2, signed=True)

    def _parse_gll(self, index: int, text: str) -> None:
        if 1 <= index <= 4:
            self._location(1, index, text)
        elif index == 5:
            self._time(text)
        elif index == 7:
            self._status(text)

    def _parse_gsa(self, index: int, text: str) -> None:
        if index == 2 and text:
            if text in ("2", "3"):
                self._sentence.put(FixField.STATUS, status=FixStatus.STD)
            elif text == "1":
                self._sentence.put(FixField.STATUS, status=FixStatus.NONE)
            else:
                raise FieldError(f"bad GSA fix type: {text!r}")
        elif 3 <= index <= 14 and text:
            parse_int(text)
        elif index == 15:
            self._scaled(FixField.PDOP, "pdop", text, 3)
        elif index == 16:
            self._scaled(FixField.HDOP, "hdop", text, 3)
        elif index == 17:
            self._scaled(FixField.VDOP, "vdop", text, 3)

    def _parse_gst(self, index: int, text: str) -> None:
        if index == 1:
            self._time(text)
        elif index == 6:
            self._scaled(FixField.LAT_ERR, "lat_err", text, 2)
        elif index == 7:
            self._scaled(FixField.LON_ERR, "lon_err", text, 2)
        elif index == 8:
            self._scaled(FixField.ALT_ERR, "alt_err", text, 2)

    def _parse_gsv(self, index: int, text: str) -> None:
        sats = self._sentence.satellites
        if index == 2:
            self._gsv_message = parse_int(text) if text else 0
        elif index >= 4:
            slot = (index - 4) % 4
            if slot == 0:
                if text:
                    sats.append(SatelliteInfo(id=parse_int(text)))
            elif sats:
                value = parse_int(text) if text else 0
                if slot == 1:
                    sats[-1].elevation = value
                elif slot == 2:
                    sats[-1].azimuth = value
                else:
                    sats[-1].snr = value
                    sats[-1].tracked = bool(text)

    def _parse_rmc(self, index: int, text: str) -> None:
        if index == 1:
            self._time(text)
        elif index == 2:
            self._status(text)
        elif 3 <= index <= 6:
            self._location(3, index, text)
        elif index == 7:
            self._scaled(FixField.SPEED, "speed", text, 3)
        elif index == 8:
            self._scaled(FixField.HEADING, "heading", text, 2)
        elif index == 9 and text:
            year, month, day = parse_ddmmyy(text)
            self._sentence.put(FixField.DATE, year=year, month=month, day=day)

    def _parse_vtg(self, index: int, text: str) -> None:
        if index == 1:
            self._scaled(FixField.HEADING, "heading", text, 2)
        elif index == 5:
            self._scaled(FixField.SPEED, "speed", text, 3)
        elif index == 9:
            self._status(text)

    def _parse_zda(self, index: int, text: str) -> None:
        s = self._sentence
        if index == 1:
            self._time(text)
        elif index == 2 and text:
            s.values["day"] = parse_int(text)
        elif index == 3 and text:
            s.values["month"] = parse_int(text)
        elif index == 4 and text:
            if len(text) not in (2, 4):
                raise FieldError(f"bad year: {text!r}")
            year = parse_int(text)
            year = 2000 + year if len(text) == 2 else year
            if "day" in s.values and "month" in s.values:
                _check_date(int(s.values["day"]), int(s.values["month"]), year)
                s.put(FixField.DATE, year=year)

    _gsv_message = 0


# --- formatters -------------------------------------------------------------


def _sentence(body: str) -> str:
    return f"${body}*{checksum(body):02X}\r\n"


def _fmt_time(fix: GpsFix) -> str:
    if not fix.has(FixField.TIME):
        return ""
    return f"{fix.hours:02d}{fix.minutes:02d}{fix.seconds:02d}.{fix.milliseconds // 10:02d}"


def _fmt_location(fix: GpsFix) -> list[str]:
    if not fix.has(FixField.LOCATION):
        return ["", "", "", ""]
    return [
        format_dddmm(fix.latitude, 2),
        "S" if fix.latitude < 0 else "N",
        format_dddmm(fix.longitude, 3),
        "W" if fix.longitude < 0 else "E",
    ]


def _opt(fix: GpsFix, field: FixField, text: Callable[[], str]) -> str:
    return text() if fix.has(field) else ""


def format_gga(fix: GpsFix, talker: str = "GP") -> str:
    fields = [
        f"{talker}GGA",
        _fmt_time(fix),
        *_fmt_location(fix),
        _opt(fix, FixField.STATUS, lambda: _GGA_QUALITY.get(fix.status, "0")),
        _opt(fix, FixField.SATELLITES, lambda: f"{fix.satellites:02d}"),
        _opt(fix, FixField.HDOP, lambda: format_scaled(fix.hdop, 3)),
        _opt(fix, FixField.ALTITUDE, lambda: format_scaled(fix.altitude, 2)),
        "M",
        _opt(fix, FixField.GEOID_HEIGHT, lambda: format_scaled(fix.geoid_height, 2)),
        "M",
        "",
        "",
    ]
    return _sentence(",".join(fields))


def format_rmc(fix: GpsFix, talker: str = "GP") -> str:
    fields = [
        f"{talker}RMC",
        _fmt_time(fix),
        _opt(fix, FixField.STATUS, lambda: "V" if fix.status == FixStatus.NONE else "A"),
        *_fmt_location(fix),
        _opt(fix, FixField.SPEED, lambda: format_scaled(fix.speed, 3)),
        _opt(fix, FixField.HEADING, lambda: format_scaled(fix.heading, 2)),
        _opt(fix, FixField.DATE, lambda: f"{fix.day:02d}{fix.month:02d}{fix.year % 100:02d}"),
        "",
        "",
    ]
    return _sentence(",".join(fields))


__all__ = [
    "NmeaParser",
    "RxState",
    "SENTENCE_TABLE",
    "checksum",
    "format_gga",
    "format_rmc",
    "parse_dddmm",
    "format_dddmm",
]
