"""gamemachine/domain/radio.py

Register-level model of the EBYTE E220 LoRa module.

The configuration block is eight bytes starting at register 0x00. Three of
them are packed bit fields; the pydantic models below keep each field as a
small integer and own the packing, so ``RadioConfiguration.from_bytes``
and ``to_bytes`` are exact inverses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from ..constants import BAND_OFFSET_868, BROADCAST_ADDRESS


class Status(IntEnum):
    """Outcome of a driver operation."""

    SUCCESS = 1
    UNKNOWN = 2
    NOT_SUPPORTED = 3
    NOT_IMPLEMENTED = 4
    NOT_INITIALIZED = 5
    INVALID_PARAM = 6
    DATA_SIZE_MISMATCH = 7
    BUFFER_TOO_SMALL = 8
    TIMEOUT = 9
    HARDWARE = 10
    HEAD_NOT_RECOGNIZED = 11
    NO_RESPONSE_FROM_DEVICE = 12
    WRONG_UART_CONFIG = 13
    WRONG_FORMAT = 14
    PACKET_TOO_BIG = 15

    @property
    def description(self) -> str:
        return _STATUS_DESCRIPTIONS.get(self, "Invalid status!")


_STATUS_DESCRIPTIONS = {
    Status.SUCCESS: "Success",
    Status.UNKNOWN: "Unknown",
    Status.NOT_SUPPORTED: "Not supported",
    Status.NOT_IMPLEMENTED: "Not implemented",
    Status.NOT_INITIALIZED: "Not initialized",
    Status.INVALID_PARAM: "Invalid parameter",
    Status.DATA_SIZE_MISMATCH: "Data size does not match",
    Status.BUFFER_TOO_SMALL: "Buffer too small",
    Status.TIMEOUT: "Timeout",
    Status.HARDWARE: "Hardware error",
    Status.HEAD_NOT_RECOGNIZED: "Returned header not recognized",
    Status.NO_RESPONSE_FROM_DEVICE: "No response from device (check wiring)",
    Status.WRONG_UART_CONFIG: "Wrong UART configuration (9600 bps required for configuration)",
    Status.WRONG_FORMAT: "Wrong format",
    Status.PACKET_TOO_BIG: "The device supports at most 200 bytes per transmission",
}


class ModeType(IntEnum):
    NORMAL = 0
    WOR_TRANSMITTER = 1
    WOR_RECEIVER = 2
    CONFIGURATION = 3
    INIT = 0xFF


class ProgramCommand(IntEnum):
    WRITE_CFG_PWR_DWN_SAVE = 0xC0
    READ_CONFIGURATION = 0xC1
    WRITE_CFG_PWR_DWN_LOSE = 0xC2
    WRONG_FORMAT = 0xFF
    SPECIAL_WIFI_CONF_COMMAND = 0xCF

    # The module echoes reads and writes with the read opcode.
    RETURNED_COMMAND = 0xC1


class RegisterAddress(IntEnum):
    CFG = 0x00
    SPED = 0x02
    TRANS_MODE = 0x03
    CHANNEL = 0x04
    OPTION = 0x05
    CRYPT = 0x06
    PID = 0x08


class PacketLength(IntEnum):
    CONFIGURATION = 0x08
    SPED = 0x01
    OPTION = 0x01
    TRANSMISSION_MODE = 0x01
    CHANNEL = 0x01
    CRYPT = 0x02
    PID = 0x03


UART_BAUD_RATES = {
    0b000: 1200,
    0b001: 2400,
    0b010: 4800,
    0b011: 9600,
    0b100: 19200,
    0b101: 38400,
    0b110: 57600,
    0b111: 115200,
}

_PARITY = {0b00: "8N1 (default)", 0b01: "8O1", 0b10: "8E1", 0b11: "8N1 (equal to 00)"}
_AIR_RATE = {
    0b000: "2.4kbps",
    0b001: "2.4kbps",
    0b010: "2.4kbps (default)",
    0b011: "4.8kbps",
    0b100: "9.6kbps",
    0b101: "19.2kbps",
    0b110: "38.4kbps",
    0b111: "62.5kbps",
}
_SUB_PACKET = {0b00: "200bytes (default)", 0b01: "128bytes", 0b10: "64bytes", 0b11: "32bytes"}
_POWER = {0b00: "22dBm (default)", 0b01: "17dBm", 0b10: "13dBm", 0b11: "10dBm"}
_WOR = {i: f"{(i + 1) * 500}ms" + (" (default)" if i == 0b011 else "") for i in range(8)}


def _enabled(flag: int) -> str:
    return "Enabled" if flag else "Disabled (default)"


class Speed(BaseModel):
    """REG0: bits 0-2 air data rate, bits 3-4 parity, bits 5-7 UART baud."""

    air_data_rate: int = Field(default=0b010, ge=0, le=7)
    uart_parity: int = Field(default=0b00, ge=0, le=3)
    uart_baud_rate: int = Field(default=0b011, ge=0, le=7)

    def to_byte(self) -> int:
        return (self.uart_baud_rate << 5) | (self.uart_parity << 3) | self.air_data_rate

    @classmethod
    def from_byte(cls, value: int) -> "Speed":
        return cls(
            air_data_rate=value & 0x07,
            uart_parity=(value >> 3) & 0x03,
            uart_baud_rate=(value >> 5) & 0x07,
        )

    @property
    def baudrate(self) -> int:
        return UART_BAUD_RATES[self.uart_baud_rate]


class Option(BaseModel):
    """REG1: bits 0-1 TX power, bits 2-4 reserved, bit 5 ambient RSSI, bits 6-7 sub-packet."""

    transmission_power: int = Field(default=0b00, ge=0, le=3)
    reserved: int = Field(default=0, ge=0, le=7)
    rssi_ambient_noise: int = Field(default=0, ge=0, le=1)
    sub_packet_setting: int = Field(default=0b00, ge=0, le=3)

    def to_byte(self) -> int:
        return (
            (self.sub_packet_setting << 6)
            | (self.rssi_ambient_noise << 5)
            | (self.reserved << 2)
            | self.transmission_power
        )

    @classmethod
    def from_byte(cls, value: int) -> "Option":
        return cls(
            transmission_power=value & 0x03,
            reserved=(value >> 2) & 0x07,
            rssi_ambient_noise=(value >> 5) & 0x01,
            sub_packet_setting=(value >> 6) & 0x03,
        )


class TransmissionMode(BaseModel):
    """REG3: bits 0-2 WOR period, bit 4 LBT, bit 6 fixed transmission, bit 7 RSSI byte."""

    wor_period: int = Field(default=0b011, ge=0, le=7)
    reserved2: int = Field(default=0, ge=0, le=1)
    enable_lbt: int = Field(default=0, ge=0, le=1)
    reserved: int = Field(default=0, ge=0, le=1)
    fixed_transmission: int = Field(default=0, ge=0, le=1)
    enable_rssi: int = Field(default=0, ge=0, le=1)

    def to_byte(self) -> int:
        return (
            (self.enable_rssi << 7)
            | (self.fixed_transmission << 6)
            | (self.reserved << 5)
            | (self.enable_lbt << 4)
            | (self.reserved2 << 3)
            | self.wor_period
        )

    @classmethod
    def from_byte(cls, value: int) -> "TransmissionMode":
        return cls(
            wor_period=value & 0x07,
            reserved2=(value >> 3) & 0x01,
            enable_lbt=(value >> 4) & 0x01,
            reserved=(value >> 5) & 0x01,
            fixed_transmission=(value >> 6) & 0x01,
            enable_rssi=(value >> 7) & 0x01,
        )


class RadioConfiguration(BaseModel):
    """Eight-byte configuration block as stored from register 0x00.

    Attributes
    ----------
    address_high, address_low:
        Module address, big-endian. ``0xFFFF`` is the broadcast address.
    speed, option, transmission_mode:
        Packed registers, see the respective models.
    channel:
        Operating frequency is ``channel + band offset`` MHz.
    crypt_high, crypt_low:
        Module-side encryption key (write only on real hardware, reads
        back as zero).
    """

    address_high: int = Field(default=0, ge=0, le=0xFF)
    address_low: int = Field(default=0, ge=0, le=0xFF)
    speed: Speed = Field(default_factory=Speed)
    option: Option = Field(default_factory=Option)
    channel: int = Field(default=0x12, ge=0, le=0xFF)
    transmission_mode: TransmissionMode = Field(default_factory=TransmissionMode)
    crypt_high: int = Field(default=0, ge=0, le=0xFF)
    crypt_low: int = Field(default=0, ge=0, le=0xFF)

    SIZE: ClassVar[int] = 8

    def to_bytes(self) -> bytes:
        return bytes(
            (
                self.address_high,
                self.address_low,
                self.speed.to_byte(),
                self.option.to_byte(),
                self.channel,
                self.transmission_mode.to_byte(),
                self.crypt_high,
                self.crypt_low,
            )
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "RadioConfiguration":
        if len(data) != 8:
            raise ValueError(f"configuration block must be 8 bytes, got {len(data)}")
        return cls(
            address_high=data[0],
            address_low=data[1],
            speed=Speed.from_byte(data[2]),
            option=Option.from_byte(data[3]),
            channel=data[4],
            transmission_mode=TransmissionMode.from_byte(data[5]),
            crypt_high=data[6],
            crypt_low=data[7],
        )

    @property
    def address(self) -> int:
        return (self.address_high << 8) | self.address_low

    @property
    def is_broadcast(self) -> bool:
        return self.address_high == BROADCAST_ADDRESS and self.address_low == BROADCAST_ADDRESS

    def frequency_mhz(self, band_offset: int = BAND_OFFSET_868) -> int:
        return self.channel + band_offset

    def describe(self, band_offset: int = BAND_OFFSET_868) -> dict[str, str]:
        """Human readable view of every field, as printed in debug logs."""

        return {
            "AddH": f"0x{self.address_high:02X}",
            "AddL": f"0x{self.address_low:02X}",
            "Channel": f"{self.channel} -> {self.frequency_mhz(band_offset)} MHz",
            "SpeedParityBit": _PARITY[self.speed.uart_parity],
            "SpeedUARTDatte": f"{self.speed.baudrate}bps"
            + (" (default)" if self.speed.uart_baud_rate == 0b011 else ""),
            "SpeedAirDataRate": _AIR_RATE[self.speed.air_data_rate],
            "OptionSubPacketSett": _SUB_PACKET[self.option.sub_packet_setting],
            "OptionTranPower": _POWER[self.option.transmission_power],
            "OptionRSSIAmbientNo": _enabled(self.option.rssi_ambient_noise),
            "TransModeWORPeriod": _WOR[self.transmission_mode.wor_period],
            "TransModeEnableLBT": _enabled(self.transmission_mode.enable_lbt),
            "TransModeEnableRSSI": _enabled(self.transmission_mode.enable_rssi),
            "TransModeFixedTrans": (
                "Fixed transmission (first three bytes are address high/low and channel)"
                if self.transmission_mode.fixed_transmission
                else "Transparent transmission (default)"
            ),
        }


class ModuleInformation(BaseModel):
    """Product information block read from register 0x08."""

    model: int = Field(ge=0, le=0xFF)
    version: int = Field(ge=0, le=0xFF)
    features: int = Field(ge=0, le=0xFF)


@dataclass
class Response:
    """Tagged result of a driver call.

    ``data`` carries the payload (or the raw echo for configuration calls)
    and ``rssi`` the trailing RSSI byte when the module appends one.
    """

    status: Status
    data: bytes = b""
    rssi: Optional[int] = None
    configuration: Optional[RadioConfiguration] = None
    information: Optional[ModuleInformation] = None

    @property
    def ok(self) -> bool:
        return self.status == Status.SUCCESS


__all__ = [
    "Status",
    "ModeType",
    "ProgramCommand",
    "RegisterAddress",
    "PacketLength",
    "Speed",
    "Option",
    "TransmissionMode",
    "RadioConfiguration",
    "ModuleInformation",
    "Response",
    "UART_BAUD_RATES",
]
