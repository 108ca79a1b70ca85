"""
High-level device operations addressed by registry ID.

DeviceManager runs scan windows against a RadioAdapter, feeds the results
into a DeviceRegistry and offers the per-device operations a front end
calls: list the GATT tree, dump readable values, read standard metadata and
acquire a temperature/humidity sample.
"""

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from .constants import (
    APPEARANCE_UUID,
    BATTERY_LEVEL_UUID,
    BATTERY_SERVICE_UUID,
    DEFAULT_COLLECT_TIMEOUT,
    DEFAULT_SCAN_DURATION,
    DEVICE_INFORMATION_SERVICE_UUID,
    DEVICE_NAME_UUID,
    FIRMWARE_REVISION_UUID,
    GENERIC_ACCESS_SERVICE_UUID,
    MANUFACTURER_NAME_UUID,
    PREFERRED_CONNECTION_PARAMETERS_UUID,
    normalize_uuid,
)
from .decoder import decode_text, decode_uint8
from .errors import (
    DecodeError,
    DeviceNotFoundError,
    DisconnectError,
    RadioError,
    ReadError,
    UnsupportedOperationError,
)
from .interfaces import Peripheral, RadioAdapter
from .models import (
    MJ_HT_V1,
    ScanObservation,
    SensorModel,
    SensorReading,
    ServiceTree,
    default_name,
    default_rssi,
)
from .notifications import NotificationPipeline
from .registry import DeviceRegistry
from .resolver import discover, find, log_tree, readable
from .session import ConnectionSession

logger = logging.getLogger(__name__)


def _format_raw(value: bytes) -> str:
    return str(list(value))


def _format_percent(value: bytes) -> str:
    return f"{decode_uint8(value)}%"


# (label, service, characteristic, formatter)
METADATA_CHARACTERISTICS: Tuple[Tuple[str, str, str, Callable[[bytes], str]], ...] = (
    ("Device Name", normalize_uuid(GENERIC_ACCESS_SERVICE_UUID),
     normalize_uuid(DEVICE_NAME_UUID), decode_text),
    ("Appearance", normalize_uuid(GENERIC_ACCESS_SERVICE_UUID),
     normalize_uuid(APPEARANCE_UUID), _format_raw),
    ("Peripheral Preferred Connection Parameters", normalize_uuid(GENERIC_ACCESS_SERVICE_UUID),
     normalize_uuid(PREFERRED_CONNECTION_PARAMETERS_UUID), _format_raw),
    ("Firmware Version", normalize_uuid(DEVICE_INFORMATION_SERVICE_UUID),
     normalize_uuid(FIRMWARE_REVISION_UUID), decode_text),
    ("Manufacturer Name", normalize_uuid(DEVICE_INFORMATION_SERVICE_UUID),
     normalize_uuid(MANUFACTURER_NAME_UUID), decode_text),
    ("Battery Level", normalize_uuid(BATTERY_SERVICE_UUID),
     normalize_uuid(BATTERY_LEVEL_UUID), _format_percent),
)


async def observe(peripheral: Peripheral) -> Optional[ScanObservation]:
    """
    Turn a discovered peripheral into a ScanObservation.

    Returns None when the peripheral's properties cannot be read.
    """
    try:
        props = await peripheral.properties()
    except RadioError as err:
        logger.debug("Skipping %s: %r", peripheral.address, err)
        return None
    name = default_name(props.local_name if props else None)
    rssi = default_rssi(props.rssi if props else None)
    logger.debug("Device found: MAC=%s, Name=%s, RSSI=%s", peripheral.address, name, rssi)
    return ScanObservation(
        mac_address=peripheral.address,
        name=name,
        signal_strength=rssi,
        peripheral=peripheral,
    )


class DeviceManager:
    """
    Scan and per-device operations on top of a radio adapter.

    Usage:
        manager = DeviceManager(get_radio_adapter())
        await manager.scan(attempts=2)
        for device_id, record in manager.registry.list():
            ...
        reading = await manager.retrieve_temperature_and_humidity(1)
    """

    def __init__(
        self,
        adapter: RadioAdapter,
        registry: Optional[DeviceRegistry] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **session_options,
    ):
        """
        Initialize the manager.

        Args:
            adapter: Radio adapter to scan with
            registry: Registry to fill (a fresh one by default)
            sleep: Coroutine used for scan windows and session waits
            session_options: Extra keyword arguments for every ConnectionSession
        """
        self.adapter = adapter
        self.registry = registry if registry is not None else DeviceRegistry()
        self._sleep = sleep
        self._session_options = session_options

    async def scan(
        self,
        attempts: int = 1,
        duration: float = DEFAULT_SCAN_DURATION,
        service_uuids: Optional[Iterable[str]] = None,
        stop_name: Optional[str] = None,
        stop_count: Optional[int] = None,
    ) -> DeviceRegistry:
        """
        Run `attempts` scan windows of `duration` seconds each.

        Stops early once `stop_count` devices named exactly `stop_name` are known.
        """
        logger.info("Starting scan with %d attempt(s)...", attempts)
        for attempt in range(1, attempts + 1):
            logger.info("Scan attempt %d/%d", attempt, attempts)
            await self.adapter.start_scan(service_uuids)
            try:
                await self._sleep(duration)
            finally:
                await self.adapter.stop_scan()

            for peripheral in await self.adapter.peripherals():
                observation = await observe(peripheral)
                if observation is not None:
                    self.registry.add_or_update(observation)

            if stop_name is not None and stop_count is not None:
                found = self.registry.count_by_exact_name(stop_name)
                if found >= stop_count:
                    logger.info("Found %d device(s) named %s, stopping scan", found, stop_name)
                    break
        logger.info("Scan completed. %d device(s) known.", len(self.registry))
        return self.registry

    def session_for(self, device_id: int) -> ConnectionSession:
        """
        Raises:
            DeviceNotFoundError: If no device has this ID.
        """
        record = self.registry.get(device_id)
        if record is None:
            raise DeviceNotFoundError(device_id)
        options = dict(self._session_options)
        options.setdefault("sleep", self._sleep)
        return ConnectionSession.for_record(record, **options)

    @contextlib.asynccontextmanager
    async def connected(self, device_id: int) -> AsyncIterator[ConnectionSession]:
        """Connect to a device for the duration of the block, then disconnect."""
        session = self.session_for(device_id)
        await session.connect()
        try:
            yield session
        finally:
            try:
                await session.disconnect()
            except DisconnectError as err:
                logger.warning("Leaving device %s connected: %s", session.address, err)

    async def list_available_info(self, device_id: int) -> ServiceTree:
        """Discover and log every service and characteristic of a device."""
        async with self.connected(device_id) as session:
            logger.info("Listing available information for %s...", session.address)
            tree = await discover(session)
            log_tree(tree)
            return tree

    async def retrieve_device_info(self, device_id: int) -> Dict[str, bytes]:
        """
        Read every readable characteristic.

        Returns:
            Values keyed by characteristic UUID. Failed reads are logged and left out.
        """
        values: Dict[str, bytes] = {}
        async with self.connected(device_id) as session:
            logger.info("Retrieving detailed information for %s...", session.address)
            tree = await discover(session)
            for characteristic in readable(tree):
                try:
                    values[characteristic.uuid] = await session.read_characteristic(characteristic)
                except ReadError as err:
                    logger.warning("Failed to read characteristic %s: %s", characteristic.uuid, err)
                    continue
                logger.info(
                    "Read value from characteristic %s: %s",
                    characteristic.uuid, list(values[characteristic.uuid]),
                )
        return values

    async def read_device_metadata(self, device_id: int) -> Dict[str, str]:
        """
        Read the standard GATT metadata characteristics a device exposes.

        Returns:
            Formatted values keyed by label, e.g. {"Battery Level": "87%"}.
        """
        metadata: Dict[str, str] = {}
        async with self.connected(device_id) as session:
            tree = await discover(session)
            for label, service_uuid, characteristic_uuid, formatter in METADATA_CHARACTERISTICS:
                characteristic = find(tree, service_uuid, characteristic_uuid)
                if characteristic is None:
                    logger.info("%s not available on %s", label, session.address)
                    continue
                try:
                    value = await session.read_characteristic(characteristic)
                    metadata[label] = formatter(value)
                except (ReadError, UnsupportedOperationError, DecodeError) as err:
                    logger.warning("Failed to read %s: %s", label, err)
                    continue
                logger.info("%s: %s", label, metadata[label])
        return metadata

    async def retrieve_temperature_and_humidity(
        self,
        device_id: int,
        model: SensorModel = MJ_HT_V1,
        timeout: float = DEFAULT_COLLECT_TIMEOUT,
        settle_delay: Optional[float] = None,
    ) -> SensorReading:
        """
        Subscribe to a sensor's temperature and humidity and wait for one of each.

        Raises:
            CharacteristicNotFoundError: If the device lacks one of the model's characteristics.
            SubscribeError: If a subscription could not be established.
            CollectTimeoutError: If the values did not arrive within `timeout`.
        """
        async with self.connected(device_id) as session:
            logger.info("Retrieving temperature and humidity from %s...", session.address)
            tree = await discover(session)
            options = {} if settle_delay is None else {"settle_delay": settle_delay}
            pipeline = NotificationPipeline(session, model, **options)
            await pipeline.subscribe_all(pipeline.resolve_descriptors(tree))
            reading = await pipeline.collect(timeout=timeout)
        logger.info(
            "Temperature: %.2f°C, Humidity: %.2f%%", reading.temperature, reading.humidity
        )
        return reading
