"""
blesense - resilient BLE sensor access

Scans for BLE peripherals, keeps stable IDs for them, and reads or
subscribes to their characteristics with retries, backoff and timeouts.
Ships decoders and a profile for the MJ_HT_V1 temperature/humidity sensor.
"""

from .models import (
    CharProperty,
    CharacteristicDescriptor,
    DeviceRecord,
    FieldSpec,
    Notification,
    PeripheralProperties,
    ScanObservation,
    SensorModel,
    SensorReading,
    ServiceDescriptor,
    ServiceTree,
    MJ_HT_V1,
    SENSOR_MODELS,
    default_name,
    default_rssi,
)
from .interfaces import Peripheral, RadioAdapter
from .errors import (
    SenseError,
    RadioError,
    ConnectError,
    RetriesExhaustedError,
    DisconnectError,
    DiscoveryError,
    NotFoundError,
    CharacteristicNotFoundError,
    DeviceNotFoundError,
    UnsupportedOperationError,
    ReadError,
    SubscribeError,
    DecodeError,
    TruncatedPayloadError,
    CollectError,
    CollectTimeoutError,
)
from .decoder import decode_scaled_int16_le, decode_field
from .retry import RetryPolicy
from .registry import DeviceRegistry
from .session import ConnectionSession, SessionState
from .resolver import discover, find, resolve
from .notifications import NotificationPipeline
from .manager import DeviceManager
from .constants import (
    MJ_HT_SERVICE_UUID,
    MJ_HT_TEMPERATURE_UUID,
    MJ_HT_HUMIDITY_UUID,
    UNKNOWN_DEVICE_NAME,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Models
    "CharProperty",
    "CharacteristicDescriptor",
    "DeviceRecord",
    "FieldSpec",
    "Notification",
    "PeripheralProperties",
    "ScanObservation",
    "SensorModel",
    "SensorReading",
    "ServiceDescriptor",
    "ServiceTree",
    "MJ_HT_V1",
    "SENSOR_MODELS",
    "default_name",
    "default_rssi",
    # Interfaces
    "Peripheral",
    "RadioAdapter",
    # Errors
    "SenseError",
    "RadioError",
    "ConnectError",
    "RetriesExhaustedError",
    "DisconnectError",
    "DiscoveryError",
    "NotFoundError",
    "CharacteristicNotFoundError",
    "DeviceNotFoundError",
    "UnsupportedOperationError",
    "ReadError",
    "SubscribeError",
    "DecodeError",
    "TruncatedPayloadError",
    "CollectError",
    "CollectTimeoutError",
    # Core
    "decode_scaled_int16_le",
    "decode_field",
    "RetryPolicy",
    "DeviceRegistry",
    "ConnectionSession",
    "SessionState",
    "discover",
    "find",
    "resolve",
    "NotificationPipeline",
    "DeviceManager",
    # Constants
    "MJ_HT_SERVICE_UUID",
    "MJ_HT_TEMPERATURE_UUID",
    "MJ_HT_HUMIDITY_UUID",
    "UNKNOWN_DEVICE_NAME",
]


def get_radio_adapter() -> RadioAdapter:
    """Get the default radio adapter (requires bleak)."""
    from .drivers import get_radio_adapter as _get_radio_adapter
    return _get_radio_adapter()
