from __future__ import annotations

import pytest
from fakes import FakeGpio, FakeSerial

from gamemachine.adapters.ebyte_e220 import (
    EbyteLoraE220,
    build_fixed_frame,
    check_response_header,
    keeloq_decrypt,
    keeloq_encrypt,
    parse_fixed_frame,
)
from gamemachine.domain import (
    ModeType,
    Option,
    PacketLength,
    RadioConfiguration,
    RegisterAddress,
    Speed,
    Status,
    TransmissionMode,
)


def _driver(lines, clock) -> EbyteLoraE220:
    serial, aux, m0, m1 = lines
    drv = EbyteLoraE220(serial, aux, m0, m1, sleep=clock.sleep)
    assert drv.begin() is True
    return drv


def test_begin_opens_lines_and_enters_normal(e220_lines, clock) -> None:
    serial, aux, m0, m1 = e220_lines
    drv = _driver(e220_lines, clock)

    assert aux.direction == "in"
    assert (m0.direction, m1.direction) == ("out", "out")
    assert (m0.level, m1.level) == (0, 0)
    assert drv.mode == ModeType.NORMAL
    # 250 ms settle + 40 + 40 + 2 ms AUX release
    assert clock.now_ms == pytest.approx(332)


def test_config_write_on_fresh_module(e220_lines, clock) -> None:
    serial, _aux, m0, m1 = e220_lines
    drv = _driver(e220_lines, clock)

    current = drv.get_configuration()
    assert current.status == Status.SUCCESS
    assert current.configuration is not None
    assert current.configuration.address == 0

    wanted = current.configuration.model_copy(update={"address_high": 0x12, "address_low": 0x34})
    result = drv.set_configuration(wanted)

    assert result.status == Status.SUCCESS
    assert serial.writes[-1][:5] == bytes([0xC0, 0x00, 0x08, 0x12, 0x34])
    assert len(serial.writes[-1]) == 11
    assert result.data[:5] == bytes([0xC1, 0x00, 0x08, 0x12, 0x34])
    assert result.configuration == wanted
    assert drv.mode == ModeType.NORMAL
    assert (m0.level, m1.level) == (0, 0)


def test_mode_switch_waits_before_first_uart_byte(e220_lines, clock) -> None:
    serial, _aux, m0, _m1 = e220_lines
    drv = _driver(e220_lines, clock)

    requested_at = clock.now_ms
    drv.get_configuration()

    pins_at = [t for t, _ in m0.history if t > requested_at][0]
    first_byte_at = serial.write_times[0]
    assert first_byte_at - requested_at >= 82
    assert first_byte_at > pins_at


def test_mode_timeout_when_aux_stays_low(e220_lines, clock) -> None:
    serial, aux, m0, m1 = e220_lines
    drv = _driver(e220_lines, clock)
    aux.input_level = 0

    started = clock.now_ms
    status = drv.set_mode(ModeType.CONFIGURATION)

    assert status == Status.TIMEOUT
    # 40 ms before the pins, 40 ms after, then exactly 1000 ms of AUX polling
    assert clock.now_ms - started == pytest.approx(1080)
    assert (m0.level, m1.level) == (1, 1)
    assert drv.mode == ModeType.NORMAL
    assert serial.writes == []


def test_configuration_refused_at_wrong_baudrate(clock, blank_module) -> None:
    serial = FakeSerial(clock, responder=blank_module)
    serial.start("/dev/ttyS0", baudrate=115200)
    drv = EbyteLoraE220(serial, FakeGpio(clock=clock), FakeGpio(clock=clock), FakeGpio(clock=clock), sleep=clock.sleep)

    assert drv.get_configuration().status == Status.WRONG_UART_CONFIG
    assert drv.set_configuration(RadioConfiguration()).status == Status.WRONG_UART_CONFIG
    assert serial.writes == []


def test_broadcast_fixed_send_wire_bytes(e220_lines, clock) -> None:
    serial, *_ = e220_lines
    drv = _driver(e220_lines, clock)

    started = clock.now_ms
    status = drv.send_broadcast_fixed_message(0x04, "HELLO")

    assert status == Status.SUCCESS
    assert serial.writes == [bytes.fromhex("FFFF0448454C4C4F")]
    assert clock.now_ms - started < 5000


def test_payload_size_limits(e220_lines, clock) -> None:
    serial, *_ = e220_lines
    drv = _driver(e220_lines, clock)

    assert drv.send_fixed_message(0, 1, 4, b"x" * 197) == Status.SUCCESS
    assert len(serial.writes[-1]) == 200
    assert drv.send_fixed_message(0, 1, 4, b"x" * 198) == Status.PACKET_TOO_BIG
    assert drv.send_message(b"y" * 200) == Status.SUCCESS
    assert drv.send_message(b"y" * 201) == Status.PACKET_TOO_BIG
    assert drv.send_message(b"") == Status.INVALID_PARAM
    assert all(len(frame) <= 200 for frame in serial.writes)


def test_short_write_is_reported(e220_lines, clock) -> None:
    serial, *_ = e220_lines
    drv = _driver(e220_lines, clock)

    serial.accept = 2
    assert drv.send_message(b"hello") == Status.DATA_SIZE_MISMATCH
    serial.accept = 0
    assert drv.send_message(b"hello") == Status.NO_RESPONSE_FROM_DEVICE


def test_send_without_aux_uses_fixed_wait(clock) -> None:
    serial = FakeSerial(clock)
    serial.start("/dev/ttyS0")
    drv = EbyteLoraE220(serial, None, FakeGpio(clock=clock), FakeGpio(clock=clock), sleep=clock.sleep)

    started = clock.now_ms
    assert drv.send_message(b"ping") == Status.SUCCESS
    assert clock.now_ms - started == pytest.approx(102)


def test_receive_message_strips_rssi(e220_lines, clock) -> None:
    serial, *_ = e220_lines
    drv = _driver(e220_lines, clock)

    assert drv.receive_message().status == Status.NO_RESPONSE_FROM_DEVICE

    drv.rssi_enabled = True
    serial.feed(b"hi\x80")
    response = drv.receive_message()
    assert response.ok
    assert response.data == b"hi"
    assert response.rssi == 0x80


def test_rssi_flag_follows_configuration(e220_lines, clock, blank_module) -> None:
    cfg = RadioConfiguration(transmission_mode=TransmissionMode(enable_rssi=1, fixed_transmission=1))
    blank_module.configuration = cfg.to_bytes()
    drv = _driver(e220_lines, clock)

    assert drv.get_configuration().ok
    assert drv.rssi_enabled is True
    assert drv.fixed_transmission is True


def test_receive_sized_and_initial(e220_lines, clock) -> None:
    serial, *_ = e220_lines
    drv = _driver(e220_lines, clock)

    serial.feed(b"abcdef")
    assert drv.receive_initial_message(2).data == b"ab"
    assert drv.receive_message_sized(3).data == b"cde"
    assert drv.receive_message_sized(4).status == Status.NO_RESPONSE_FROM_DEVICE
    serial.feed(b"ab")
    assert drv.receive_initial_message(4).status == Status.DATA_SIZE_MISMATCH


def test_module_information(e220_lines, clock) -> None:
    drv = _driver(e220_lines, clock)

    response = drv.get_module_information()
    assert response.ok
    assert response.information is not None
    assert (response.information.model, response.information.version) == (0x20, 0x0B)
    assert drv.mode == ModeType.NORMAL


def test_reset_is_not_implemented(e220_lines, clock) -> None:
    drv = _driver(e220_lines, clock)
    assert drv.reset_module() == Status.NOT_IMPLEMENTED


def test_remote_configuration_frame(e220_lines, clock) -> None:
    serial, *_ = e220_lines
    drv = _driver(e220_lines, clock)
    cfg = RadioConfiguration(address_high=0x01, address_low=0x02, channel=0x04)

    assert drv.send_configuration_message(0x00, 0x05, 0x04, cfg) == Status.SUCCESS
    frame = serial.writes[-1]
    assert frame[:8] == bytes([0x00, 0x05, 0x04, 0xCF, 0xCF, 0xC0, 0x00, 0x08])
    assert frame[8:] == cfg.to_bytes()


def test_response_header_checks() -> None:
    cfg, size = RegisterAddress.CFG, PacketLength.CONFIGURATION
    assert check_response_header(b"", cfg, size) == Status.NO_RESPONSE_FROM_DEVICE
    assert check_response_header(b"\xff\xff\xff", cfg, size) == Status.WRONG_FORMAT
    assert check_response_header(b"\xc0\x00\x08", cfg, size) == Status.HEAD_NOT_RECOGNIZED
    assert check_response_header(b"\xc1\x00\x08" + bytes(8), cfg, size) == Status.SUCCESS


def test_configuration_record_layout() -> None:
    cfg = RadioConfiguration(
        address_high=0x12,
        address_low=0x34,
        speed=Speed(air_data_rate=0b010, uart_parity=0b01, uart_baud_rate=0b011),
        option=Option(transmission_power=0b10, rssi_ambient_noise=1, sub_packet_setting=0b01),
        channel=0x04,
        transmission_mode=TransmissionMode(wor_period=0b011, enable_lbt=1, fixed_transmission=1, enable_rssi=1),
    )
    raw = cfg.to_bytes()

    assert raw == bytes([0x12, 0x34, 0x6A, 0x62, 0x04, 0xD3, 0x00, 0x00])
    assert RadioConfiguration.from_bytes(raw) == cfg
    assert cfg.frequency_mhz(850) == 854


def test_reserved_bits_survive_round_trip() -> None:
    for value in (0x00, 0x1C, 0xFF):
        assert Option.from_byte(value).to_byte() == value
        assert TransmissionMode.from_byte(value).to_byte() == value
        assert Speed.from_byte(value).to_byte() == value


def test_fixed_frame_round_trip() -> None:
    frame = build_fixed_frame(0xAB, 0xCD, 0x17, b"payload")
    assert parse_fixed_frame(frame) == (0xAB, 0xCD, 0x17, b"payload")


def test_keeloq_round_trip() -> None:
    for block in (0, 1, 0xDEADBEEF, 0xFFFFFFFF):
        encrypted = keeloq_encrypt(block)
        assert 0 <= encrypted <= 0xFFFFFFFF
        assert keeloq_decrypt(encrypted) == block
    assert keeloq_encrypt(0x12345678) != keeloq_encrypt(0x12345678, half_key=0x01020304)


def test_driver_cipher_uses_its_key(e220_lines, clock) -> None:
    serial, aux, m0, m1 = e220_lines
    default = EbyteLoraE220(serial, aux, m0, m1, sleep=clock.sleep)
    keyed = EbyteLoraE220(serial, aux, m0, m1, half_key=0x01020304, sleep=clock.sleep)

    assert default.encrypt(0x12345678) == keeloq_encrypt(0x12345678)
    assert keyed.encrypt(0x12345678) == keeloq_encrypt(0x12345678, half_key=0x01020304)
    assert keyed.decrypt(keyed.encrypt(0xCAFEF00D)) == 0xCAFEF00D
    assert default.decrypt(keyed.encrypt(0xCAFEF00D)) != 0xCAFEF00D
