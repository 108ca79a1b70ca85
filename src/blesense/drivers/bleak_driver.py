"""
Default radio implementation using the `bleak` library.

Provides scanning and GATT client operations for Windows/macOS/Linux.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from ..constants import NOTIFICATION_QUEUE_SIZE, normalize_uuid
from ..errors import RadioError
from ..interfaces import Peripheral, RadioAdapter
from ..models import (
    CharacteristicDescriptor,
    CharProperty,
    Notification,
    PeripheralProperties,
    ServiceDescriptor,
)

logger = logging.getLogger(__name__)


def properties_from_advertisement(
    device: BLEDevice, adv_data: Optional[AdvertisementData]
) -> PeripheralProperties:
    """Build PeripheralProperties from what bleak reported for a device."""
    if adv_data is None:
        return PeripheralProperties(address=device.address, local_name=device.name)
    return PeripheralProperties(
        address=device.address,
        local_name=adv_data.local_name or device.name,
        rssi=adv_data.rssi,
        service_uuids=tuple(normalize_uuid(u) for u in adv_data.service_uuids),
    )


def services_from_collection(collection) -> Tuple[ServiceDescriptor, ...]:
    """Convert a BleakGATTServiceCollection into ServiceDescriptors."""
    services = []
    for service in collection:
        service_uuid = normalize_uuid(service.uuid)
        characteristics = tuple(
            CharacteristicDescriptor(
                service_uuid=service_uuid,
                uuid=normalize_uuid(char.uuid),
                properties=CharProperty.from_names(char.properties),
                handle=char.handle,
            )
            for char in service.characteristics
        )
        services.append(ServiceDescriptor(uuid=service_uuid, characteristics=characteristics))
    return tuple(services)


class NotificationBuffer:
    """
    Bounded notification queue fed from bleak callbacks.

    When full, the oldest notification is dropped to make room.
    """

    def __init__(self, maxsize: int = NOTIFICATION_QUEUE_SIZE):
        self._queue: "asyncio.Queue[Notification]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def put(self, notification: Notification) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(notification)

    def clear(self) -> int:
        """Discard everything queued. Returns the number discarded."""
        count = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            count += 1
        return count

    async def get(self) -> Notification:
        return await self._queue.get()

    def __len__(self) -> int:
        return self._queue.qsize()


class BleakPeripheral(Peripheral):
    """Peripheral handle backed by a BleakClient."""

    def __init__(self, device: BLEDevice, adv_data: Optional[AdvertisementData] = None):
        self._device = device
        self._adv_data = adv_data
        self._client = BleakClient(device, disconnected_callback=self._on_disconnected)
        self._services: Tuple[ServiceDescriptor, ...] = ()
        self._buffer = NotificationBuffer()
        self._subscribed: Dict[str, object] = {}

    @property
    def address(self) -> str:
        return self._device.address

    def update(self, device: BLEDevice, adv_data: AdvertisementData) -> None:
        """Record a newer advertisement for this peripheral."""
        self._device = device
        self._adv_data = adv_data

    async def properties(self) -> Optional[PeripheralProperties]:
        return properties_from_advertisement(self._device, self._adv_data)

    def _on_disconnected(self, client: BleakClient) -> None:
        logger.info("Device %s disconnected", self.address)
        self._services = ()
        self._subscribed.clear()
        self._buffer.clear()

    async def connect(self) -> None:
        self._buffer.clear()
        try:
            await self._client.connect()
        except BleakError as err:
            raise RadioError(f"Connect failed: {err}", address=self.address) from err

    async def disconnect(self) -> None:
        subscribed = list(self._subscribed.items()) if self._client.is_connected else []
        for uuid, specifier in subscribed:
            try:
                await self._client.stop_notify(specifier)
            except BleakError as err:
                logger.warning("Failed to stop notifications for %s on %s: %r", uuid, self.address, err)
        self._subscribed.clear()
        try:
            await self._client.disconnect()
        except BleakError as err:
            raise RadioError(f"Disconnect failed: {err}", address=self.address) from err
        self._buffer.clear()

    async def is_connected(self) -> bool:
        return self._client.is_connected

    async def discover_services(self) -> None:
        """
        Snapshot the GATT database.

        bleak resolves services while connecting, so this only copies them.
        """
        if not self._client.is_connected:
            raise RadioError("Not connected", address=self.address)
        try:
            self._services = services_from_collection(self._client.services)
        except BleakError as err:
            raise RadioError(f"Service discovery failed: {err}", address=self.address) from err

    def services(self) -> Sequence[ServiceDescriptor]:
        return self._services

    @staticmethod
    def _specifier(characteristic: CharacteristicDescriptor):
        if characteristic.handle is not None:
            return characteristic.handle
        return characteristic.uuid

    async def read(self, characteristic: CharacteristicDescriptor) -> bytes:
        try:
            data = await self._client.read_gatt_char(self._specifier(characteristic))
        except BleakError as err:
            raise RadioError(
                f"Read failed: {err}", address=self.address, uuid=characteristic.uuid
            ) from err
        return bytes(data)

    async def subscribe(self, characteristic: CharacteristicDescriptor) -> None:
        uuid = characteristic.uuid
        specifier = self._specifier(characteristic)

        def handler(_sender, data: bytearray) -> None:
            self._buffer.put(Notification(characteristic_uuid=uuid, value=bytes(data)))

        try:
            await self._client.start_notify(specifier, handler)
        except BleakError as err:
            raise RadioError(f"Subscribe failed: {err}", address=self.address, uuid=uuid) from err
        self._subscribed[uuid] = specifier

    def clear_notifications(self) -> None:
        dropped = self._buffer.clear()
        if dropped:
            logger.debug("Discarded %d stale notifications from %s", dropped, self.address)

    async def notifications(self) -> AsyncIterator[Notification]:
        while True:
            yield await self._buffer.get()


class BleakRadioAdapter(RadioAdapter):
    """
    Radio adapter using the `bleak` library.

    Works on Windows, macOS, and Linux. Peripheral handles are cached per
    address so that repeated scans hand out the same object.
    """

    def __init__(self):
        self._scanner: Optional[BleakScanner] = None
        self._scanning = False
        self._peripherals: Dict[str, BleakPeripheral] = {}

    def _detection_callback(self, device: BLEDevice, adv_data: AdvertisementData) -> None:
        peripheral = self._peripherals.get(device.address)
        if peripheral is None:
            logger.debug(
                "Device found: MAC=%s, Name=%s, RSSI=%s",
                device.address, adv_data.local_name or device.name, adv_data.rssi,
            )
            self._peripherals[device.address] = BleakPeripheral(device, adv_data)
        else:
            peripheral.update(device, adv_data)

    async def start_scan(self, service_uuids: Optional[Iterable[str]] = None) -> None:
        if self._scanning:
            return
        uuids = [normalize_uuid(u) for u in service_uuids] if service_uuids else None
        self._scanner = BleakScanner(
            detection_callback=self._detection_callback, service_uuids=uuids
        )
        try:
            await self._scanner.start()
        except BleakError as err:
            raise RadioError(f"Failed to start scan: {err}") from err
        self._scanning = True

    async def stop_scan(self) -> None:
        if self._scanner and self._scanning:
            await self._scanner.stop()
            self._scanning = False

    async def peripherals(self) -> List[Peripheral]:
        return list(self._peripherals.values())
