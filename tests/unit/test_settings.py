from __future__ import annotations

import pytest
from pydantic import ValidationError

from config import IoSettings, RadioSettings, Settings


def test_defaults_match_board_wiring() -> None:
    s = Settings(_env_file=None)
    assert s.radio.port == "/dev/ttyS0"
    assert (s.radio.aux_gpio, s.radio.m0_gpio, s.radio.m1_gpio) == (49, 50, 51)
    assert s.gnss.port == "/dev/ttyS3"
    assert (s.io.outputs_low_address, s.io.outputs_high_address, s.io.keypad_address) == (0x26, 0x20, 0x23)
    assert s.status_led.blink_ms == 500
    assert (s.display.cols, s.display.rows) == (20, 4)


def test_section_env_override(monkeypatch) -> None:
    monkeypatch.setenv("ASM_RADIO_PORT", "/dev/ttyS1")
    monkeypatch.setenv("ASM_IO_DEBOUNCE_MS", "50")
    assert RadioSettings().port == "/dev/ttyS1"
    assert IoSettings().debounce_ms == 50


def test_keymap_needs_sixteen_keys() -> None:
    with pytest.raises(ValidationError):
        IoSettings(keymap="123")
