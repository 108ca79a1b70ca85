"""Shared fakes for the radio layer."""

import asyncio
from typing import List, Optional

import pytest

from blesense.constants import normalize_uuid
from blesense.errors import RadioError
from blesense.interfaces import Peripheral, RadioAdapter
from blesense.models import (
    CharacteristicDescriptor,
    CharProperty,
    Notification,
    PeripheralProperties,
    ServiceDescriptor,
    MJ_HT_V1,
)


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def make_char(service_uuid, uuid, *flags, handle=None) -> CharacteristicDescriptor:
    properties = CharProperty.NONE
    for flag in flags:
        properties |= flag
    return CharacteristicDescriptor(
        service_uuid=normalize_uuid(service_uuid),
        uuid=normalize_uuid(uuid),
        properties=properties,
        handle=handle,
    )


def mj_ht_services() -> List[ServiceDescriptor]:
    service_uuid = MJ_HT_V1.fields[0].service_uuid
    return [
        ServiceDescriptor(
            uuid=service_uuid,
            characteristics=tuple(
                make_char(service_uuid, spec.characteristic_uuid, CharProperty.NOTIFY, CharProperty.READ)
                for spec in MJ_HT_V1.fields
            ),
        )
    ]


class FakePeripheral(Peripheral):
    """
    In-memory peripheral.

    connect_failures / read_failures / subscribe_failures: number of calls that
    raise RadioError before the operation starts succeeding (-1 = always fail).
    hangs: same counting per call name ("connect", "read", "subscribe"), but the
    call never returns instead of failing.
    """

    def __init__(
        self,
        address: str = "AA:BB:CC:DD:EE:FF",
        name: Optional[str] = "MJ_HT_V1",
        rssi: Optional[int] = -60,
        services=None,
        values=None,
        notifications=None,
    ):
        self._address = address
        self.name = name
        self.rssi = rssi
        self.connected = False
        self.connect_failures = 0
        self.read_failures = 0
        self.subscribe_failures = 0
        self.disconnect_fails = False
        self.discover_fails = False
        self.properties_fail = False
        self.drop_after_read = False
        self.drop_on_read_failure = False
        self.hangs = {}
        self._services = ()
        self._advertised_services = tuple(services or ())
        self.values = dict(values or {})
        self.pending = list(notifications or [])
        self.queue: "asyncio.Queue[Notification]" = asyncio.Queue()
        self.calls: List[str] = []
        self.subscribed: List[str] = []

    @property
    def address(self) -> str:
        return self._address

    @staticmethod
    def _fail(counter: int) -> bool:
        return counter != 0

    async def _maybe_hang(self, name: str) -> None:
        remaining = self.hangs.get(name, 0)
        if remaining == 0:
            return
        if remaining > 0:
            self.hangs[name] = remaining - 1
        await asyncio.Event().wait()

    async def properties(self):
        if self.properties_fail:
            raise RadioError("no properties", address=self._address)
        return PeripheralProperties(address=self._address, local_name=self.name, rssi=self.rssi)

    async def connect(self) -> None:
        self.calls.append("connect")
        await self._maybe_hang("connect")
        if self._fail(self.connect_failures):
            if self.connect_failures > 0:
                self.connect_failures -= 1
            raise RadioError("connect refused", address=self._address)
        self.connected = True

    async def disconnect(self) -> None:
        self.calls.append("disconnect")
        if self.disconnect_fails:
            raise RadioError("disconnect refused", address=self._address)
        self.connected = False

    async def is_connected(self) -> bool:
        return self.connected

    async def discover_services(self) -> None:
        self.calls.append("discover")
        if self.discover_fails:
            raise RadioError("discovery failed", address=self._address)
        self._services = self._advertised_services

    def services(self):
        return self._services

    async def read(self, characteristic) -> bytes:
        self.calls.append("read")
        await self._maybe_hang("read")
        if self._fail(self.read_failures):
            if self.read_failures > 0:
                self.read_failures -= 1
            if self.drop_on_read_failure:
                self.connected = False
            raise RadioError("read failed", address=self._address, uuid=characteristic.uuid)
        if self.drop_after_read:
            self.connected = False
        return self.values.get(characteristic.uuid, b"")

    async def subscribe(self, characteristic) -> None:
        self.calls.append("subscribe")
        await self._maybe_hang("subscribe")
        if self._fail(self.subscribe_failures):
            if self.subscribe_failures > 0:
                self.subscribe_failures -= 1
            raise RadioError("subscribe failed", address=self._address, uuid=characteristic.uuid)
        self.subscribed.append(characteristic.uuid)
        for notification in list(self.pending):
            if normalize_uuid(notification.characteristic_uuid) == characteristic.uuid:
                self.queue.put_nowait(notification)
                self.pending.remove(notification)

    def clear_notifications(self) -> None:
        while not self.queue.empty():
            self.queue.get_nowait()

    async def notifications(self):
        while True:
            yield await self.queue.get()


class FakeAdapter(RadioAdapter):
    """Adapter whose scan results are set by the test."""

    def __init__(self, peripherals=None):
        self.discovered = list(peripherals or [])
        self.scans = 0
        self.scanning = False

    async def start_scan(self, service_uuids=None) -> None:
        self.scans += 1
        self.scanning = True

    async def stop_scan(self) -> None:
        self.scanning = False

    async def peripherals(self):
        return list(self.discovered)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def peripheral():
    return FakePeripheral(services=mj_ht_services())
