"""
Device registry.

Reconciles scan results into stable, process-local integer IDs keyed by
MAC address.
"""

import dataclasses
import logging
import threading
from typing import Dict, List, Optional, Tuple

from .models import DeviceRecord, ScanObservation

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    MAC-deduplicated mapping of integer IDs to device records.

    IDs start at 1 and are never reused. add_or_update is serialized by a
    lock so scan callbacks on different threads cannot create duplicates.
    """

    def __init__(self):
        self._devices: Dict[int, DeviceRecord] = {}
        self._ids_by_mac: Dict[str, int] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def add_or_update(self, observation: ScanObservation) -> int:
        """
        Insert a new record or refresh the one with the same MAC address.

        Returns:
            The record's ID.
        """
        with self._lock:
            device_id = self._ids_by_mac.get(observation.mac_address)
            if device_id is not None:
                record = self._devices[device_id]
                logger.debug("Updating existing device with MAC: %s", observation.mac_address)
                record.name = observation.name
                record.signal_strength = observation.signal_strength
                record.peripheral = observation.peripheral
                return device_id

            device_id = self._next_id
            self._next_id += 1
            logger.debug(
                "Adding new device with MAC: %s as ID: %d", observation.mac_address, device_id
            )
            self._devices[device_id] = DeviceRecord(
                id=device_id,
                mac_address=observation.mac_address,
                name=observation.name,
                signal_strength=observation.signal_strength,
                peripheral=observation.peripheral,
            )
            self._ids_by_mac[observation.mac_address] = device_id
            return device_id

    def get(self, device_id: int) -> Optional[DeviceRecord]:
        return self._devices.get(device_id)

    def list(self) -> List[Tuple[int, DeviceRecord]]:
        """Snapshot of (id, record) pairs."""
        with self._lock:
            return [
                (device_id, dataclasses.replace(record))
                for device_id, record in self._devices.items()
            ]

    def list_by_name_substring(self, pattern: str) -> List[Tuple[int, DeviceRecord]]:
        """Records whose name contains `pattern` (case-sensitive)."""
        return [(device_id, record) for device_id, record in self.list() if pattern in record.name]

    def count_by_exact_name(self, name: str) -> int:
        with self._lock:
            return sum(1 for record in self._devices.values() if record.name == name)

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id) -> bool:
        return device_id in self._devices
