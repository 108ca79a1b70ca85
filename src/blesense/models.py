"""
Data models for blesense.
"""

from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from .constants import (
    MJ_HT_HUMIDITY_UUID,
    MJ_HT_MODEL_NAME,
    MJ_HT_SERVICE_UUID,
    MJ_HT_TEMPERATURE_UUID,
    UNKNOWN_DEVICE_NAME,
    normalize_uuid,
)


class CharProperty(Flag):
    """GATT characteristic property flags."""
    NONE = 0
    BROADCAST = auto()
    READ = auto()
    WRITE_WITHOUT_RESPONSE = auto()
    WRITE = auto()
    NOTIFY = auto()
    INDICATE = auto()
    AUTHENTICATED_SIGNED_WRITES = auto()
    EXTENDED_PROPERTIES = auto()

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "CharProperty":
        """
        Build a flag set from property names such as "read" or "write-without-response".

        Unknown names are ignored.
        """
        flags = cls.NONE
        for name in names:
            member = cls.__members__.get(name.strip().upper().replace("-", "_"))
            if member is not None:
                flags |= member
        return flags

    def names(self) -> Tuple[str, ...]:
        """Lower-case names of the flags that are set."""
        return tuple(
            name.lower().replace("_", "-")
            for name, member in type(self).__members__.items()
            if member and member in self
        )


def default_name(name: Optional[str]) -> str:
    """Advertised name, or the unknown-device sentinel when none was advertised."""
    return name if name else UNKNOWN_DEVICE_NAME


def default_rssi(rssi: Optional[int]) -> Optional[int]:
    """RSSI as an int, or None when the advertisement did not report one."""
    if rssi is None:
        return None
    return int(rssi)


@dataclass
class ScanObservation:
    """One scan result for a peripheral."""
    mac_address: str
    name: str = UNKNOWN_DEVICE_NAME
    signal_strength: Optional[int] = None
    peripheral: Any = None


@dataclass
class DeviceRecord:
    """A physically distinct BLE peripheral known to the registry."""
    id: int
    mac_address: str
    name: str = UNKNOWN_DEVICE_NAME
    signal_strength: Optional[int] = None
    peripheral: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class CharacteristicDescriptor:
    """A discovered characteristic and its property flags."""
    service_uuid: str
    uuid: str
    properties: CharProperty = CharProperty.NONE
    handle: Optional[int] = None

    def supports(self, flag: CharProperty) -> bool:
        return flag in self.properties


@dataclass(frozen=True)
class ServiceDescriptor:
    """A discovered service and its characteristics."""
    uuid: str
    characteristics: Tuple[CharacteristicDescriptor, ...] = ()


@dataclass(frozen=True)
class ServiceTree:
    """Immutable snapshot of a connected peripheral's GATT database."""
    address: str
    services: Tuple[ServiceDescriptor, ...] = ()

    def characteristics(self) -> Iterator[CharacteristicDescriptor]:
        for service in self.services:
            yield from service.characteristics

    def __len__(self) -> int:
        return len(self.services)


@dataclass(frozen=True)
class PeripheralProperties:
    """Advertised properties of a discovered peripheral."""
    address: str
    local_name: Optional[str] = None
    rssi: Optional[int] = None
    service_uuids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Notification:
    """A value pushed by a peripheral after subscription."""
    characteristic_uuid: str
    value: bytes


@dataclass(frozen=True)
class FieldSpec:
    """Where a named sensor field lives and how to scale it."""
    name: str
    service_uuid: str
    characteristic_uuid: str
    offset: int = 0
    scale: float = 100.0


@dataclass(frozen=True)
class SensorModel:
    """Per-model layout of the sensor fields."""
    name: str
    fields: Tuple[FieldSpec, ...]

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def by_characteristic(self) -> Dict[str, FieldSpec]:
        """Field specs keyed by normalized characteristic UUID."""
        return {normalize_uuid(spec.characteristic_uuid): spec for spec in self.fields}


@dataclass(frozen=True)
class SensorReading:
    """A complete temperature/humidity sample."""
    temperature: float
    humidity: float

    @classmethod
    def from_fields(cls, values: Dict[str, float]) -> "SensorReading":
        return cls(temperature=values["temperature"], humidity=values["humidity"])


# Each MJ_HT_V1 characteristic carries its own value in bytes 0-1.
MJ_HT_V1 = SensorModel(
    name=MJ_HT_MODEL_NAME,
    fields=(
        FieldSpec(
            name="temperature",
            service_uuid=normalize_uuid(MJ_HT_SERVICE_UUID),
            characteristic_uuid=normalize_uuid(MJ_HT_TEMPERATURE_UUID),
            offset=0,
        ),
        FieldSpec(
            name="humidity",
            service_uuid=normalize_uuid(MJ_HT_SERVICE_UUID),
            characteristic_uuid=normalize_uuid(MJ_HT_HUMIDITY_UUID),
            offset=0,
        ),
    ),
)

SENSOR_MODELS = {MJ_HT_V1.name: MJ_HT_V1}
