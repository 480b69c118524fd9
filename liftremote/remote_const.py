"""Constants for the BLE lift remote protocol."""

# Nordic UART Service (NUS) UUIDs
SERVICE_UUID = "6e400001-b5a3-f393-e0a9-e50e24dcca9e"
# NUS RX: the peripheral receives on this one, so the remote writes to it
WRITE_CHARACTERISTIC_UUID = "6e400002-b5a3-f393-e0a9-e50e24dcca9e"
# NUS TX: notify-only, not subscribed by the remote
NOTIFY_CHARACTERISTIC_UUID = "6e400003-b5a3-f393-e0a9-e50e24dcca9e"

# Command codes understood by the lift firmware, keyed by MotionCommand value.
# Each code is sent as UTF-8 followed by COMMAND_TERMINATOR.
DEFAULT_COMMAND_CODES = {
    "raise": "UP",
    "lower": "DOWN",
    "stop": "STOP",
}

# Older firmware builds expect one-character codes
SINGLE_CHAR_COMMAND_CODES = {
    "raise": "U",
    "lower": "D",
    "stop": "S",
}

COMMAND_TERMINATOR = "\n"
COMMAND_ENCODING = "utf-8"

# Connection settings
DEFAULT_SCAN_TIMEOUT = 10.0  # seconds
