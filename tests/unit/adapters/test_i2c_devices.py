from __future__ import annotations

from fakes import FakeI2cBus

from gamemachine.adapters.i2c_display import I2cCharacterDisplay
from gamemachine.adapters.pcf8574 import PCF8574, PCF8574_I2C_ERROR, PCF8574_OK, PCF8574_PIN_ERROR


def _data_bytes(writes: list[tuple[int, int]]) -> list[int]:
    """Rebuild the bytes sent with RS high from the EN-high nibble writes."""

    nibbles = [value for _addr, value in writes if value & 0x04 and value & 0x01]
    return [(hi & 0xF0) | (lo >> 4) for hi, lo in zip(nibbles[::2], nibbles[1::2])]


def test_pcf8574_single_pin_writes() -> None:
    bus = FakeI2cBus()
    chip = PCF8574(bus, 0x26)

    assert chip.begin()
    assert chip.write(0, False)
    assert chip.write(7, False)
    assert bus.values[0x26] == 0x7E
    assert chip.toggle(0)
    assert chip.value_out == 0x7F

    assert chip.write(8, True) is False
    assert chip.last_error() == PCF8574_PIN_ERROR
    assert chip.last_error() == PCF8574_OK


def test_pcf8574_read_and_bus_error() -> None:
    bus = FakeI2cBus()
    chip = PCF8574(bus, 0x20)
    bus.values[0x20] = 0b1010_0000

    assert chip.read(7) == 1
    assert chip.read(6) == 0
    bus.missing.add(0x20)
    assert chip.read8() is None
    assert chip.last_error() == PCF8574_I2C_ERROR


def test_display_init_and_text() -> None:
    bus = FakeI2cBus()
    lcd = I2cCharacterDisplay(bus, 0x27, sleep=lambda _s: None)

    assert lcd.init()
    assert bus.opened
    bus.writes.clear()

    lcd.set_cursor(18, 2)
    lcd.write("ABCD")
    assert _data_bytes(bus.writes) == [ord("A"), ord("B")]
    # every byte keeps the backlight bit
    assert all(value & 0x08 for _addr, value in bus.writes)


def test_display_row_offsets() -> None:
    lcd = I2cCharacterDisplay(FakeI2cBus(), sleep=lambda _s: None)
    assert [lcd.row_offset(r) for r in range(4)] == [0x00, 0x40, 0x14, 0x54]


def test_display_missing_device() -> None:
    bus = FakeI2cBus()
    bus.missing.add(0x27)
    assert I2cCharacterDisplay(bus, 0x27, sleep=lambda _s: None).init() is False
    assert I2cCharacterDisplay(FakeI2cBus(open_ok=False), sleep=lambda _s: None).init() is False


def test_display_backlight_off() -> None:
    bus = FakeI2cBus()
    lcd = I2cCharacterDisplay(bus, 0x27, sleep=lambda _s: None)
    lcd.backlight(False)
    assert bus.values[0x27] == 0x00
    lcd.backlight(True)
    assert bus.values[0x27] == 0x08


def test_pcf8574_keeps_last_input() -> None:
    bus = FakeI2cBus()
    chip = PCF8574(bus, 0x20)
    bus.values[0x20] = 0x5A

    assert chip.read8() == 0x5A
    assert chip.value_in == 0x5A
    bus.missing.add(0x20)
    assert chip.read8() is None
    assert chip.value_in == 0x5A


def test_display_home_rewinds_column() -> None:
    bus = FakeI2cBus()
    lcd = I2cCharacterDisplay(bus, 0x27, sleep=lambda _s: None)
    assert lcd.init()

    lcd.set_cursor(18, 0)
    lcd.write("AB")
    bus.writes.clear()

    lcd.home()
    nibbles = [value for _addr, value in bus.writes if value & 0x04 and not value & 0x01]
    assert [(hi & 0xF0) | (lo >> 4) for hi, lo in zip(nibbles[::2], nibbles[1::2])] == [0x02]

    lcd.write("ABCD")
    assert _data_bytes(bus.writes) == [ord(c) for c in "ABCD"]
