"""
Constants for blesense.
"""

import uuid

# MJ_HT_V1 temperature/humidity sensor
MJ_HT_SERVICE_UUID = uuid.UUID("226c0000-6476-4566-7562-66734470666d")
MJ_HT_TEMPERATURE_UUID = uuid.UUID("226caa55-6476-4566-7562-66734470666d")
MJ_HT_HUMIDITY_UUID = uuid.UUID("226cbb55-6476-4566-7562-66734470666d")
MJ_HT_MODEL_NAME = "MJ_HT_V1"

# Standard GATT services
GENERIC_ACCESS_SERVICE_UUID = uuid.UUID("00001800-0000-1000-8000-00805f9b34fb")
DEVICE_INFORMATION_SERVICE_UUID = uuid.UUID("0000180a-0000-1000-8000-00805f9b34fb")
BATTERY_SERVICE_UUID = uuid.UUID("0000180f-0000-1000-8000-00805f9b34fb")

# Standard GATT characteristics
DEVICE_NAME_UUID = uuid.UUID("00002a00-0000-1000-8000-00805f9b34fb")
APPEARANCE_UUID = uuid.UUID("00002a01-0000-1000-8000-00805f9b34fb")
PREFERRED_CONNECTION_PARAMETERS_UUID = uuid.UUID("00002a04-0000-1000-8000-00805f9b34fb")
FIRMWARE_REVISION_UUID = uuid.UUID("00002a26-0000-1000-8000-00805f9b34fb")
MANUFACTURER_NAME_UUID = uuid.UUID("00002a29-0000-1000-8000-00805f9b34fb")
BATTERY_LEVEL_UUID = uuid.UUID("00002a19-0000-1000-8000-00805f9b34fb")

# Advertisement defaults
UNKNOWN_DEVICE_NAME = "Unknown Device"

# Retry budgets (seconds)
CONNECT_ATTEMPTS = 3
READ_ATTEMPTS = 3
SUBSCRIBE_ATTEMPTS = 3
BACKOFF_BASE = 2.0
SUBSCRIBE_RETRY_DELAY = 2.0

# Pacing (seconds)
READ_SETTLE_DELAY = 1.0
READ_PACING_DELAY = 0.5
SUBSCRIBE_SETTLE_DELAY = 3.0

# Timeouts (seconds)
OPERATION_TIMEOUT = 20.0
DEFAULT_SCAN_DURATION = 5.0
DEFAULT_COLLECT_TIMEOUT = 30.0


def normalize_uuid(value) -> str:
    """Return the canonical lower-case string form of a UUID or UUID string."""
    return str(value).strip().lower()

# Notifications buffered per peripheral before the oldest are dropped
NOTIFICATION_QUEUE_SIZE = 64
