"""
Hardware wiring and timing settings for the game machine.
Path: config/settings.py

Every value can be overridden from the environment (or a ``.env`` file)
using the prefix of its section, e.g. ``ASM_RADIO_PORT=/dev/ttyS1``.
GPIO numbers are sysfs ids: ``bank * 32 + group * 8 + pin``.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from gamemachine.constants import (
    BAND_OFFSET_868,
    CONFIGURATION_BAUDRATE,
    DISPLAY_ADDR,
    DISPLAY_COLS,
    DISPLAY_ROWS,
    GNSS_LOOP_MS,
    GNSS_MAX_DRAIN,
    INOUT_LOOP_MS,
    IO0_7_ADDR,
    IO8_15_ADDR,
    KEY_QUEUE_SIZE,
    KEYBOARD_ADDR,
    KEYMAP_4X4,
    KEYPAD_DEBOUNCE_MS,
    MAILBOX_SIZE,
    MAX_THREAD_WAIT_ON_EXIT,
    RADIO_LOOP_MS,
    STATUS_BLINK_MS,
    SYSFS_GPIO_ROOT,
)


class RadioSettings(BaseSettings):
    """E220 LoRa module."""

    port: str = Field(default="/dev/ttyS0", description="UART wired to the module")
    baudrate: int = Field(default=CONFIGURATION_BAUDRATE)
    aux_gpio: int | None = Field(default=49, description="GPIO1_C1, None when AUX is not wired")
    m0_gpio: int | None = Field(default=50, description="GPIO1_C2")
    m1_gpio: int | None = Field(default=51, description="GPIO1_C3")
    channel: int = Field(default=0x04, ge=0, le=0xFF)
    band_offset: int = Field(default=BAND_OFFSET_868, description="MHz added to the channel register")
    loop_ms: int = Field(default=RADIO_LOOP_MS, ge=1)
    mailbox_size: int = Field(default=MAILBOX_SIZE, ge=1)

    model_config = {"env_prefix": "ASM_RADIO_"}


class GnssSettings(BaseSettings):
    """NMEA receiver."""

    port: str = Field(default="/dev/ttyS3")
    baudrate: int = Field(default=9600)
    loop_ms: int = Field(default=GNSS_LOOP_MS, ge=1)
    max_drain: int = Field(default=GNSS_MAX_DRAIN, ge=1, description="Bytes fed to the parser per loop")

    model_config = {"env_prefix": "ASM_GNSS_"}


class IoSettings(BaseSettings):
    """I/O board: lamp/relay expanders and keypad on one I²C bus."""

    i2c_bus: int = Field(default=3)
    outputs_low_address: int = Field(default=IO0_7_ADDR, description="LED1..5, RELAY1..3")
    outputs_high_address: int = Field(default=IO8_15_ADDR, description="RELAY4..6")
    keypad_address: int = Field(default=KEYBOARD_ADDR)
    keymap: str = Field(default=KEYMAP_4X4, min_length=16, max_length=16)
    debounce_ms: int = Field(default=KEYPAD_DEBOUNCE_MS, ge=0)
    loop_ms: int = Field(default=INOUT_LOOP_MS, ge=1)
    key_queue_size: int = Field(default=KEY_QUEUE_SIZE, ge=1)

    model_config = {"env_prefix": "ASM_IO_"}


class DisplaySettings(BaseSettings):
    """HD44780 20x4 on its own I²C bus."""

    i2c_bus: int = Field(default=4)
    address: int = Field(default=DISPLAY_ADDR)
    cols: int = Field(default=DISPLAY_COLS)
    rows: int = Field(default=DISPLAY_ROWS)

    model_config = {"env_prefix": "ASM_DISPLAY_"}


class StatusLedSettings(BaseSettings):
    """Heartbeat lamp driven by the interval timer."""

    gpio: int = Field(default=52, description="GPIO1_C4")
    blink_ms: int = Field(default=STATUS_BLINK_MS, ge=1)

    model_config = {"env_prefix": "ASM_STATUS_LED_"}


class Settings(BaseSettings):
    """Main settings container."""

    radio: RadioSettings = Field(default_factory=RadioSettings)
    gnss: GnssSettings = Field(default_factory=GnssSettings)
    io: IoSettings = Field(default_factory=IoSettings)
    display: DisplaySettings = Field(default_factory=DisplaySettings)
    status_led: StatusLedSettings = Field(default_factory=StatusLedSettings)

    gpio_root: str = Field(default=SYSFS_GPIO_ROOT)
    join_timeout_s: float = Field(default=MAX_THREAD_WAIT_ON_EXIT, gt=0)

    model_config = {
        "env_prefix": "ASM_",
        "env_file": ".env",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }
