"""gamemachine/adapters/ebyte_e220.py

Driver for the EBYTE E220 LoRa transceiver (UART plus M0/M1/AUX lines).

Every public operation returns a :class:`~gamemachine.domain.radio.Status`
or a :class:`~gamemachine.domain.radio.Response`; nothing here raises for
device or protocol failures.

Mode selection (M1, M0): NORMAL (0, 0), WOR transmitter (0, 1), WOR
receiver (1, 0), configuration (1, 1). Configuration mode only answers at
9600 bps, so configuration calls refuse to run at any other line speed.
AUX is low while the module is busy. Without an AUX line a fixed wait
replaces the busy poll.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Union

from ..constants import (
    AUX_RELEASE_MS,
    BAND_OFFSET_868,
    BEGIN_SETTLE_MS,
    BROADCAST_ADDRESS,
    CONFIGURATION_BAUDRATE,
    DEFAULT_HALF_KEELOQ_KEY,
    FIXED_HEADER_SIZE,
    KEELOQ_NLF,
    KEELOQ_ROUNDS,
    MAX_AVAILABLE_READ,
    MAX_SIZE_TX_PACKET,
    MODE_AUX_TIMEOUT_MS,
    MODE_POST_SETTLE_MS,
    MODE_PRE_SETTLE_MS,
    NO_AUX_WAIT_MS,
    PROGRAM_COMMAND_SETTLE_MS,
    TX_COMPLETE_TIMEOUT_MS,
    UART_READ_TIMEOUT_MS,
)
from ..domain.radio import (
    ModeType,
    ModuleInformation,
    PacketLength,
    ProgramCommand,
    RadioConfiguration,
    RegisterAddress,
    Response,
    Status,
)
from ..logging_utils import logprintf
from ..ports import GpioLinePort, SerialLinePort

Payload = Union[bytes, bytearray, str]

COMMAND_HEADER_SIZE = 3
CONFIGURATION_FRAME_SIZE = COMMAND_HEADER_SIZE + PacketLength.CONFIGURATION
MODULE_INFO_FRAME_SIZE = COMMAND_HEADER_SIZE + PacketLength.PID

# (M0, M1) per mode.
_MODE_PINS = {
    ModeType.NORMAL: (0, 0),
    ModeType.WOR_TRANSMITTER: (1, 0),
    ModeType.WOR_RECEIVER: (0, 1),
    ModeType.CONFIGURATION: (1, 1),
}


def _bit(value: int, bit: int) -> int:
    return (value >> bit) & 0x01


def keeloq_encrypt(data: int, half_key: int = DEFAULT_HALF_KEELOQ_KEY) -> int:
    """Encrypt one 32-bit block; ``half_key`` fills both key halves."""

    x = data & 0xFFFFFFFF
    for r in range(KEELOQ_ROUNDS):
        key_bit_no = r & 63
        key_bit = _bit(half_key, key_bit_no if key_bit_no < 32 else key_bit_no - 32)
        index = (
            _bit(x, 1)
            | _bit(x, 9) << 1
            | _bit(x, 20) << 2
            | _bit(x, 26) << 3
            | _bit(x, 31) << 4
        )
        bit_val = _bit(x, 0) ^ _bit(x, 16) ^ _bit(KEELOQ_NLF, index) ^ key_bit
        x = (x >> 1) ^ (bit_val << 31)
    return x


def keeloq_decrypt(data: int, half_key: int = DEFAULT_HALF_KEELOQ_KEY) -> int:
    """Inverse of :func:`keeloq_encrypt`."""

    x = data & 0xFFFFFFFF
    for r in range(KEELOQ_ROUNDS):
        key_bit_no = (15 - r) & 63
        key_bit = _bit(half_key, key_bit_no if key_bit_no < 32 else key_bit_no - 32)
        index = (
            _bit(x, 0)
            | _bit(x, 8) << 1
            | _bit(x, 19) << 2
            | _bit(x, 25) << 3
            | _bit(x, 30) << 4
        )
        bit_val = _bit(x, 31) ^ _bit(x, 15) ^ _bit(KEELOQ_NLF, index) ^ key_bit
        x = ((x << 1) ^ bit_val) & 0xFFFFFFFF
    return x


def _as_bytes(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def build_fixed_frame(address_high: int, address_low: int, channel: int, payload: Payload) -> bytes:
    """``addrH | addrL | channel | payload`` as the module expects in fixed mode."""

    return bytes((address_high & 0xFF, address_low & 0xFF, channel & 0xFF)) + _as_bytes(payload)


def parse_fixed_frame(frame: bytes) -> tuple[int, int, int, bytes]:
    if len(frame) < FIXED_HEADER_SIZE:
        raise ValueError("fixed frame shorter than its header")
    return frame[0], frame[1], frame[2], bytes(frame[FIXED_HEADER_SIZE:])


def check_response_header(frame: bytes, address: RegisterAddress, length: PacketLength) -> Status:
    """Validate the three-byte echo that prefixes every configuration answer."""

    if not frame:
        return Status.NO_RESPONSE_FROM_DEVICE
    if frame[0] == ProgramCommand.WRONG_FORMAT:
        return Status.WRONG_FORMAT
    if len(frame) < COMMAND_HEADER_SIZE or tuple(frame[:COMMAND_HEADER_SIZE]) != (
        ProgramCommand.RETURNED_COMMAND,
        address,
        length,
    ):
        return Status.HEAD_NOT_RECOGNIZED
    return Status.SUCCESS


class EbyteLoraE220:
    """E220 protocol engine on top of a serial line and up to three GPIO lines.

    Parameters
    ----------
    serial:
        Opened (or openable) byte line to the module's UART.
    aux, m0, m1:
        GPIO lines; ``None`` when not wired. They are opened by :meth:`begin`.
    band_offset:
        MHz added to the channel register for descriptions.
    sleep:
        Seconds-based sleep, injectable for tests.
    """

    def __init__(
        self,
        serial: SerialLinePort,
        aux: Optional[GpioLinePort] = None,
        m0: Optional[GpioLinePort] = None,
        m1: Optional[GpioLinePort] = None,
        *,
        band_offset: int = BAND_OFFSET_868,
        half_key: int = DEFAULT_HALF_KEELOQ_KEY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._serial = serial
        self._aux = aux
        self._m0 = m0
        self._m1 = m1
        self._band_offset = band_offset
        self._half_key = half_key
        self._sleep = sleep
        self._mode = ModeType.INIT
        self.rssi_enabled = False
        self.fixed_transmission = False

    # --- timing helpers ---------------------------------------------------

    def _sleep_ms(self, ms: int) -> None:
        self._sleep(ms / 1000.0)

    def _aux_high(self) -> bool:
        assert self._aux is not None
        return self._aux.read() == 1

    def wait_complete_response(self, timeout_ms: int, no_aux_wait_ms: int = NO_AUX_WAIT_MS) -> Status:
        """Wait for AUX to rise, polling every millisecond up to ``timeout_ms`` polls."""

        if self._aux is not None:
            remaining = timeout_ms
            while not self._aux_high():
                self._sleep_ms(1)
                remaining -= 1
                if remaining <= 0:
                    logprintf(3, "E220: AUX still low after %d ms", timeout_ms)
                    return Status.TIMEOUT
        else:
            self._sleep_ms(no_aux_wait_ms)

        self._sleep_ms(AUX_RELEASE_MS)
        return Status.SUCCESS

    # --- lifecycle ----------------------------------------------------------

    @property
    def mode(self) -> ModeType:
        return self._mode

    def begin(self) -> bool:
        if self._aux is not None:
            self._aux.open("in")
        for line in (self._m0, self._m1):
            if line is not None:
                line.open("out", 0)

        self._sleep_ms(BEGIN_SETTLE_MS)
        return self.set_mode(ModeType.NORMAL) == Status.SUCCESS

    def end(self) -> None:
        for line in (self._aux, self._m0, self._m1):
            if line is not None:
                line.close()

    def set_mode(self, mode: ModeType) -> Status:
        if mode not in _MODE_PINS:
            return Status.INVALID_PARAM

        self._sleep_ms(MODE_PRE_SETTLE_MS)

        if self._m0 is None or self._m1 is None:
            logprintf(3, "E220: M0/M1 not wired, mode %s assumed set by hardware", mode.name)
        else:
            m0, m1 = _MODE_PINS[mode]
            (self._m0.set if m0 else self._m0.reset)()
            (self._m1.set if m1 else self._m1.reset)()

        self._sleep_ms(MODE_POST_SETTLE_MS)

        status = self.wait_complete_response(MODE_AUX_TIMEOUT_MS)
        if status == Status.SUCCESS:
            self._mode = mode
        return status

    def _check_uart_configuration(self, mode: ModeType) -> Status:
        if mode == ModeType.CONFIGURATION and self._serial.baudrate != CONFIGURATION_BAUDRATE:
            return Status.WRONG_UART_CONFIG
        return Status.SUCCESS

    def _restore_mode(self, previous: ModeType) -> Status:
        return self.set_mode(ModeType.NORMAL if previous == ModeType.INIT else previous)

    # --- raw UART transactions ---------------------------------------------

    def clean_uart_buffer(self) -> None:
        self._serial.reset_input_buffer()

    def available(self) -> int:
        return self._serial.available()

    def _write_frame(self, frame: bytes) -> Status:
        written = self._serial.write(frame)
        if written == len(frame):
            return Status.SUCCESS
        logprintf(3, "E220: wrote %d of %d bytes", written, len(frame))
        return Status.NO_RESPONSE_FROM_DEVICE if written == 0 else Status.DATA_SIZE_MISMATCH

    def _send_struct(self, frame: bytes) -> Status:
        if len(frame) > MAX_SIZE_TX_PACKET:
            return Status.PACKET_TOO_BIG
        status = self._write_frame(frame)
        if status != Status.SUCCESS:
            return status
        status = self.wait_complete_response(TX_COMPLETE_TIMEOUT_MS)
        if status != Status.SUCCESS:
            return status
        self.clean_uart_buffer()
        return Status.SUCCESS

    def _receive_struct(self, size: int) -> tuple[Status, bytes]:
        data = self._serial.read(size, UART_READ_TIMEOUT_MS / 1000.0)
        if len(data) != size:
            return (Status.NO_RESPONSE_FROM_DEVICE if not data else Status.DATA_SIZE_MISMATCH), data
        return self.wait_complete_response(MODE_AUX_TIMEOUT_MS), data

    def _write_program_command(self, command: ProgramCommand, address: RegisterAddress, length: PacketLength) -> bool:
        written = self._serial.write(bytes((command, address, length)))
        self._sleep_ms(PROGRAM_COMMAND_SETTLE_MS)
        return written == COMMAND_HEADER_SIZE

    def _log_configuration(self, configuration: RadioConfiguration) -> None:
        for key, text in configuration.describe(self._band_offset).items():
            logprintf(3, "E220 %-20s: %s", key, text)

    def _remember(self, configuration: RadioConfiguration) -> None:
        self.rssi_enabled = bool(configuration.transmission_mode.enable_rssi)
        self.fixed_transmission = bool(configuration.transmission_mode.fixed_transmission)

    # --- configuration ------------------------------------------------------

    def get_configuration(self) -> Response:
        status = self._check_uart_configuration(ModeType.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status)

        previous = self._mode
        status = self.set_mode(ModeType.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status)

        self._write_program_command(
            ProgramCommand.READ_CONFIGURATION, RegisterAddress.CFG, PacketLength.CONFIGURATION
        )
        status, raw = self._receive_struct(CONFIGURATION_FRAME_SIZE)
        if status != Status.SUCCESS:
            self._restore_mode(previous)
            return Response(status, raw)

        status = self._restore_mode(previous)
        if status != Status.SUCCESS:
            return Response(status, raw)

        status = check_response_header(raw, RegisterAddress.CFG, PacketLength.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status, raw)

        configuration = RadioConfiguration.from_bytes(raw[COMMAND_HEADER_SIZE:])
        self._remember(configuration)
        self._log_configuration(configuration)
        return Response(Status.SUCCESS, raw, configuration=configuration)

    def set_configuration(
        self,
        configuration: RadioConfiguration,
        save_type: ProgramCommand = ProgramCommand.WRITE_CFG_PWR_DWN_SAVE,
    ) -> Response:
        if save_type not in (ProgramCommand.WRITE_CFG_PWR_DWN_SAVE, ProgramCommand.WRITE_CFG_PWR_DWN_LOSE):
            return Response(Status.INVALID_PARAM)

        status = self._check_uart_configuration(ModeType.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status)

        previous = self._mode
        status = self.set_mode(ModeType.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status)

        frame = bytes((save_type, RegisterAddress.CFG, PacketLength.CONFIGURATION)) + configuration.to_bytes()
        status = self._write_frame(frame)
        if status == Status.SUCCESS:
            status = self.wait_complete_response(TX_COMPLETE_TIMEOUT_MS)
        if status != Status.SUCCESS:
            self._restore_mode(previous)
            return Response(status)

        # The module echoes the written block; read it before anything flushes the UART.
        status, echo = self._receive_struct(CONFIGURATION_FRAME_SIZE)
        restored = self._restore_mode(previous)
        if status != Status.SUCCESS:
            return Response(status, echo)
        if restored != Status.SUCCESS:
            return Response(restored, echo)

        status = check_response_header(echo, RegisterAddress.CFG, PacketLength.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status, echo)

        written = RadioConfiguration.from_bytes(echo[COMMAND_HEADER_SIZE:])
        self._remember(written)
        self._log_configuration(written)
        return Response(Status.SUCCESS, echo, configuration=written)

    def get_module_information(self) -> Response:
        status = self._check_uart_configuration(ModeType.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status)

        previous = self._mode
        status = self.set_mode(ModeType.CONFIGURATION)
        if status != Status.SUCCESS:
            return Response(status)

        self._write_program_command(ProgramCommand.READ_CONFIGURATION, RegisterAddress.PID, PacketLength.PID)
        status, raw = self._receive_struct(MODULE_INFO_FRAME_SIZE)
        if status != Status.SUCCESS:
            self._restore_mode(previous)
            return Response(status, raw)

        status = self._restore_mode(previous)
        if status != Status.SUCCESS:
            return Response(status, raw)

        status = check_response_header(raw, RegisterAddress.PID, PacketLength.PID)
        if status != Status.SUCCESS:
            return Response(status, raw)

        info = ModuleInformation(model=raw[3], version=raw[4], features=raw[5])
        logprintf(3, "E220 model=0x%02X version=0x%02X features=0x%02X", info.model, info.version, info.features)
        return Response(Status.SUCCESS, raw, information=info)

    def reset_module(self) -> Status:
        logprintf(3, "E220: no reset command available")
        return Status.NOT_IMPLEMENTED

    # --- transmit -----------------------------------------------------------

    def send_message(self, payload: Payload) -> Status:
        """Transparent send: the wire frame is the payload itself."""

        data = _as_bytes(payload)
        if not data:
            return Status.INVALID_PARAM
        if len(data) > MAX_SIZE_TX_PACKET:
            return Status.PACKET_TOO_BIG
        return self._send_struct(data)

    def send_fixed_message(self, address_high: int, address_low: int, channel: int, payload: Payload) -> Status:
        data = _as_bytes(payload)
        if not data:
            return Status.INVALID_PARAM
        if len(data) + FIXED_HEADER_SIZE > MAX_SIZE_TX_PACKET:
            return Status.PACKET_TOO_BIG
        return self._send_struct(build_fixed_frame(address_high, address_low, channel, data))

    def send_broadcast_fixed_message(self, channel: int, payload: Payload) -> Status:
        return self.send_fixed_message(BROADCAST_ADDRESS, BROADCAST_ADDRESS, channel, payload)

    def send_configuration_message(
        self,
        address_high: int,
        address_low: int,
        channel: int,
        configuration: RadioConfiguration,
        command: ProgramCommand = ProgramCommand.WRITE_CFG_PWR_DWN_SAVE,
    ) -> Status:
        """Program a remote module over the air (``CF CF`` + command block)."""

        body = (
            bytes(
                (
                    ProgramCommand.SPECIAL_WIFI_CONF_COMMAND,
                    ProgramCommand.SPECIAL_WIFI_CONF_COMMAND,
                    command,
                    RegisterAddress.CFG,
                    PacketLength.CONFIGURATION,
                )
            )
            + configuration.to_bytes()
        )
        return self.send_fixed_message(address_high, address_low, channel, body)

    # --- receive ------------------------------------------------------------

    def receive_message(self, rssi: Optional[bool] = None) -> Response:
        """Take whatever the UART holds as one datagram."""

        rssi = self.rssi_enabled if rssi is None else rssi
        pending = min(self._serial.available(), MAX_AVAILABLE_READ)
        if pending <= 0:
            return Response(Status.NO_RESPONSE_FROM_DEVICE)

        data = self._serial.read(pending, UART_READ_TIMEOUT_MS / 1000.0)
        self.clean_uart_buffer()
        if not data:
            return Response(Status.NO_RESPONSE_FROM_DEVICE)
        if rssi:
            return Response(Status.SUCCESS, data[:-1], rssi=data[-1])
        return Response(Status.SUCCESS, data)

    def receive_message_sized(self, size: int, rssi: Optional[bool] = None) -> Response:
        """Read exactly ``size`` payload bytes (plus the RSSI byte when enabled)."""

        if size <= 0:
            return Response(Status.INVALID_PARAM)
        rssi = self.rssi_enabled if rssi is None else rssi

        status, data = self._receive_struct(size)
        if status != Status.SUCCESS:
            return Response(status, data)

        rssi_value = None
        if rssi:
            extra = self._serial.read(1, UART_READ_TIMEOUT_MS / 1000.0)
            rssi_value = extra[0] if extra else None
        self.clean_uart_buffer()
        return Response(Status.SUCCESS, data, rssi=rssi_value)

    def receive_initial_message(self, size: int) -> Response:
        """Exact read with no AUX wait and no drain (used for message prefixes)."""

        if size <= 0:
            return Response(Status.INVALID_PARAM)
        data = self._serial.read(size, UART_READ_TIMEOUT_MS / 1000.0)
        if len(data) != size:
            return Response(Status.NO_RESPONSE_FROM_DEVICE if not data else Status.DATA_SIZE_MISMATCH, data)
        return Response(Status.SUCCESS, data)

    # --- block cipher -------------------------------------------------------

    def encrypt(self, data: int) -> int:
        return keeloq_encrypt(data, self._half_key)

    def decrypt(self, data: int) -> int:
        return keeloq_decrypt(data, self._half_key)


__all__ = [
    "EbyteLoraE220",
    "build_fixed_frame",
    "parse_fixed_frame",
    "check_response_header",
    "keeloq_encrypt",
    "keeloq_decrypt",
]
