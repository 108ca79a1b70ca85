"""Tests for DeviceManager."""

import pytest

from blesense.constants import (
    BATTERY_LEVEL_UUID,
    BATTERY_SERVICE_UUID,
    DEVICE_NAME_UUID,
    GENERIC_ACCESS_SERVICE_UUID,
    UNKNOWN_DEVICE_NAME,
    normalize_uuid,
)
from blesense.errors import (
    CharacteristicNotFoundError,
    CollectTimeoutError,
    DeviceNotFoundError,
)
from blesense.manager import DeviceManager
from blesense.models import CharProperty, MJ_HT_V1, Notification, ServiceDescriptor

from conftest import FakeAdapter, FakePeripheral, make_char, mj_ht_services


def metadata_services():
    battery = make_char(BATTERY_SERVICE_UUID, BATTERY_LEVEL_UUID, CharProperty.READ)
    name = make_char(GENERIC_ACCESS_SERVICE_UUID, DEVICE_NAME_UUID, CharProperty.READ)
    return [
        ServiceDescriptor(uuid=name.service_uuid, characteristics=(name,)),
        ServiceDescriptor(uuid=battery.service_uuid, characteristics=(battery,)),
    ]


async def scanned_manager(sleep, *peripherals):
    manager = DeviceManager(FakeAdapter(peripherals), sleep=sleep)
    await manager.scan()
    return manager


@pytest.mark.asyncio
async def test_scan_registers_devices(sleep):
    adapter = FakeAdapter([FakePeripheral("AA"), FakePeripheral("BB", name=None, rssi=None)])
    manager = DeviceManager(adapter, sleep=sleep)

    registry = await manager.scan(attempts=2, duration=5.0)

    assert adapter.scans == 2
    assert not adapter.scanning
    assert sleep.delays == [5.0, 5.0]
    assert len(registry) == 2
    unnamed = registry.get(2)
    assert unnamed.name == UNKNOWN_DEVICE_NAME
    assert unnamed.signal_strength is None


@pytest.mark.asyncio
async def test_scan_stops_once_enough_sensors_found(sleep):
    adapter = FakeAdapter([FakePeripheral("AA"), FakePeripheral("BB", name="Other")])
    manager = DeviceManager(adapter, sleep=sleep)

    await manager.scan(attempts=5, stop_name="MJ_HT_V1", stop_count=1)

    assert adapter.scans == 1


@pytest.mark.asyncio
async def test_scan_skips_unreadable_peripherals(sleep):
    broken = FakePeripheral("CC")
    broken.properties_fail = True
    manager = await scanned_manager(sleep, FakePeripheral("AA"), broken)

    assert len(manager.registry) == 1


@pytest.mark.asyncio
async def test_rescan_keeps_ids(sleep):
    adapter = FakeAdapter([FakePeripheral("AA", rssi=-60)])
    manager = DeviceManager(adapter, sleep=sleep)
    await manager.scan()

    adapter.discovered = [FakePeripheral("BB"), FakePeripheral("AA", rssi=-55)]
    await manager.scan()

    assert manager.registry.get(1).mac_address == "AA"
    assert manager.registry.get(1).signal_strength == -55
    assert manager.registry.get(2).mac_address == "BB"


@pytest.mark.asyncio
async def test_unknown_device_id(sleep):
    manager = await scanned_manager(sleep)

    with pytest.raises(DeviceNotFoundError) as excinfo:
        await manager.list_available_info(7)

    assert excinfo.value.device_id == 7


@pytest.mark.asyncio
async def test_list_available_info_disconnects(sleep):
    peripheral = FakePeripheral("AA", services=mj_ht_services())
    manager = await scanned_manager(sleep, peripheral)

    tree = await manager.list_available_info(1)

    assert len(list(tree.characteristics())) == 2
    assert peripheral.calls == ["connect", "discover", "disconnect"]


@pytest.mark.asyncio
async def test_retrieve_device_info_skips_failed_reads(sleep):
    services = metadata_services()
    battery = services[1].characteristics[0]
    name = services[0].characteristics[0]
    peripheral = FakePeripheral("AA", services=services, values={battery.uuid: b"\x57", name.uuid: b"MJ"})
    manager = await scanned_manager(sleep, peripheral)

    values = await manager.retrieve_device_info(1)
    assert values == {name.uuid: b"MJ", battery.uuid: b"\x57"}

    peripheral.read_failures = 3
    values = await manager.retrieve_device_info(1)
    assert values == {battery.uuid: b"\x57"}
    assert peripheral.calls[-1] == "disconnect"


@pytest.mark.asyncio
async def test_read_device_metadata_formats_values(sleep):
    services = metadata_services()
    peripheral = FakePeripheral(
        "AA",
        services=services,
        values={
            normalize_uuid(DEVICE_NAME_UUID): b"MJ_HT_V1",
            normalize_uuid(BATTERY_LEVEL_UUID): bytes([87]),
        },
    )
    manager = await scanned_manager(sleep, peripheral)

    metadata = await manager.read_device_metadata(1)

    assert metadata == {"Device Name": "MJ_HT_V1", "Battery Level": "87%"}


@pytest.mark.asyncio
async def test_retrieve_temperature_and_humidity(sleep):
    temperature = MJ_HT_V1.field("temperature").characteristic_uuid
    humidity = MJ_HT_V1.field("humidity").characteristic_uuid
    peripheral = FakePeripheral(
        "AA",
        services=mj_ht_services(),
        notifications=[
            Notification(temperature, (2345).to_bytes(2, "little")),
            Notification(humidity, (5510).to_bytes(2, "little")),
        ],
    )
    manager = await scanned_manager(sleep, peripheral)

    reading = await manager.retrieve_temperature_and_humidity(1, timeout=1.0)

    assert reading.temperature == pytest.approx(23.45)
    assert reading.humidity == pytest.approx(55.1)
    assert peripheral.subscribed == [temperature, humidity]
    assert peripheral.calls[-1] == "disconnect"


@pytest.mark.asyncio
async def test_retrieve_temperature_and_humidity_missing_characteristic(sleep):
    peripheral = FakePeripheral("AA", services=metadata_services())
    manager = await scanned_manager(sleep, peripheral)

    with pytest.raises(CharacteristicNotFoundError) as excinfo:
        await manager.retrieve_temperature_and_humidity(1, timeout=0.1)

    assert excinfo.value.uuid == MJ_HT_V1.field("temperature").characteristic_uuid
    assert "subscribe" not in peripheral.calls
    assert peripheral.calls[-1] == "disconnect"


@pytest.mark.asyncio
async def test_retrieve_temperature_and_humidity_timeout(sleep):
    peripheral = FakePeripheral("AA", services=mj_ht_services())
    manager = await scanned_manager(sleep, peripheral)

    with pytest.raises(CollectTimeoutError):
        await manager.retrieve_temperature_and_humidity(1, timeout=0.05)

    assert not peripheral.connected
