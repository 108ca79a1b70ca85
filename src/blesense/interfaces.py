"""
Abstract interfaces for the radio layer.

Drivers implement these to plug a BLE stack into blesense. The default
driver uses bleak; tests use an in-memory fake.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Iterable, List, Optional, Sequence

from .models import (
    CharacteristicDescriptor,
    Notification,
    PeripheralProperties,
    ServiceDescriptor,
)


class Peripheral(ABC):
    """
    Handle to one discovered BLE peripheral.

    Radio failures are reported as RadioError so that callers can retry them.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Stable hardware identity (MAC address or platform UUID)."""
        pass

    @abstractmethod
    async def properties(self) -> Optional[PeripheralProperties]:
        """Latest advertised properties, or None if none were captured."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """Open a connection to the peripheral."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    async def is_connected(self) -> bool:
        pass

    @abstractmethod
    async def discover_services(self) -> None:
        """Run GATT discovery. Must be connected."""
        pass

    @abstractmethod
    def services(self) -> Sequence[ServiceDescriptor]:
        """Services found by the last discovery."""
        pass

    @abstractmethod
    async def read(self, characteristic: CharacteristicDescriptor) -> bytes:
        """Read a characteristic value."""
        pass

    @abstractmethod
    async def subscribe(self, characteristic: CharacteristicDescriptor) -> None:
        """
        Enable notifications for a characteristic.

        Values pushed afterwards appear on notifications().
        """
        pass

    @abstractmethod
    def clear_notifications(self) -> None:
        """Discard notifications that have not been consumed yet."""
        pass

    @abstractmethod
    def notifications(self) -> AsyncIterator[Notification]:
        """Unbounded stream of notifications from subscribed characteristics."""
        pass


class RadioAdapter(ABC):
    """
    Abstract BLE adapter for scanning.

    The default implementation uses bleak.
    """

    @abstractmethod
    async def start_scan(self, service_uuids: Optional[Iterable[str]] = None) -> None:
        """
        Start scanning.

        Args:
            service_uuids: Only report peripherals advertising one of these
                services. None reports everything.
        """
        pass

    @abstractmethod
    async def stop_scan(self) -> None:
        """Stop scanning."""
        pass

    @abstractmethod
    async def peripherals(self) -> List[Peripheral]:
        """Peripherals discovered so far."""
        pass
