"""Protocol constants, timings and board wiring.

Timing values follow the E220 datasheet margins used by the field units;
expander addresses and pins match the I/O board revision in service.
"""

# --- LoRa module ------------------------------------------------------------

BROADCAST_ADDRESS: int = 0xFF
MAX_SIZE_TX_PACKET: int = 200
FIXED_HEADER_SIZE: int = 3
CONFIGURATION_BAUDRATE: int = 9600

# Frequency base added to the channel register, per module band.
BAND_OFFSET_400: int = 410
BAND_OFFSET_230: int = 220
BAND_OFFSET_868: int = 850
BAND_OFFSET_915: int = 900

DEFAULT_HALF_KEELOQ_KEY: int = 0x06660708
KEELOQ_NLF: int = 0x3A5C742E
KEELOQ_ROUNDS: int = 528

# Milliseconds
MODE_PRE_SETTLE_MS: int = 40
MODE_POST_SETTLE_MS: int = 40
MODE_AUX_TIMEOUT_MS: int = 1000
AUX_RELEASE_MS: int = 2
NO_AUX_WAIT_MS: int = 100
TX_COMPLETE_TIMEOUT_MS: int = 5000
BEGIN_SETTLE_MS: int = 250
PROGRAM_COMMAND_SETTLE_MS: int = 50
UART_READ_TIMEOUT_MS: int = 100
MAX_AVAILABLE_READ: int = 255

# --- Workers ----------------------------------------------------------------

RADIO_LOOP_MS: int = 100
GNSS_LOOP_MS: int = 100
INOUT_LOOP_MS: int = 20
GNSS_MAX_DRAIN: int = 1024
MAILBOX_SIZE: int = 32
KEY_QUEUE_SIZE: int = 64
MAX_THREAD_WAIT_ON_EXIT: float = 10.0
STATUS_BLINK_MS: int = 500

# --- Keypad -----------------------------------------------------------------

KEYPAD_NOKEY: int = 16
KEYPAD_FAIL: int = 17
KEYPAD_DEBOUNCE_MS: int = 100

KEYMAP_4X4: str = "123A456B789C*0#D"

# --- I/O board --------------------------------------------------------------

IO0_7_ADDR: int = 0x26
IO8_15_ADDR: int = 0x20
KEYBOARD_ADDR: int = 0x23
DISPLAY_ADDR: int = 0x27

LED_COUNT: int = 5
RELAY_COUNT: int = 6

# --- Display ----------------------------------------------------------------

DISPLAY_COLS: int = 20
DISPLAY_ROWS: int = 4

# --- GPIO -------------------------------------------------------------------

SYSFS_GPIO_ROOT: str = "/sys/class/gpio"
