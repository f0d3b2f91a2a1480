"""Shared pytest fixtures for the game machine test suite."""

from __future__ import annotations

import pytest
from fakes import E220Responder, FakeClock, FakeGpio, FakeSerial, GpioBank

from gamemachine.domain import RadioConfiguration


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blank_module() -> E220Responder:
    """A module fresh from the factory: address 0x0000, channel 0x12."""
    return E220Responder(RadioConfiguration().to_bytes())


@pytest.fixture
def e220_lines(clock, blank_module):
    serial = FakeSerial(clock, responder=blank_module)
    serial.start("/dev/ttyS0", baudrate=9600)
    aux = FakeGpio(49, clock, input_level=1)
    m0 = FakeGpio(50, clock)
    m1 = FakeGpio(51, clock)
    return serial, aux, m0, m1


@pytest.fixture
def gpio_bank(clock) -> GpioBank:
    return GpioBank(clock)


@pytest.fixture
def asm_cfg(tmp_path):
    """Write a minimal airsoft/asm-config.cfg under tmp_path."""
    cfg_dir = tmp_path / "airsoft"
    cfg_dir.mkdir()
    cfg_path = cfg_dir / "asm-config.cfg"
    cfg_path.write_text("address_high=0x12\naddress_low=0x34\n", encoding="utf-8")
    return cfg_path
