import asyncio
import sys
import argparse
import logging

# Configure logger
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ],
    datefmt='%Y%m%d %H%M%S',
)
logger = logging.getLogger(__name__)

from blesense import DeviceManager, SenseError, get_radio_adapter
from blesense.models import SENSOR_MODELS


async def run(args) -> int:
    manager = DeviceManager(get_radio_adapter())

    logger.info("[SCAN] 🔍 Scanning %d x %ss...", args.attempts, args.duration)
    await manager.scan(
        attempts=args.attempts,
        duration=args.duration,
        stop_name=args.model if args.stop_count else None,
        stop_count=args.stop_count,
    )

    devices = sorted(manager.registry.list())
    if args.name:
        devices = manager.registry.list_by_name_substring(args.name)
    if not devices:
        logger.warning("[SCAN] ⚠️  No devices found.")
        return 1
    for device_id, record in devices:
        logger.info(
            "[SCAN] 📱 ID: %s | MAC: %s | Name: %-20s | RSSI: %s",
            device_id, record.mac_address, record.name, record.signal_strength,
        )

    if args.device is None:
        return 0

    try:
        if args.action == "list":
            await manager.list_available_info(args.device)
        elif args.action == "dump":
            await manager.retrieve_device_info(args.device)
        elif args.action == "metadata":
            for label, value in (await manager.read_device_metadata(args.device)).items():
                logger.info("[INFO] %s: %s", label, value)
        elif args.action == "sensor":
            reading = await manager.retrieve_temperature_and_humidity(
                args.device, model=SENSOR_MODELS[args.model], timeout=args.timeout
            )
            logger.info("[DATA] 🌡️  %.2f°C | 💧 %.2f%%", reading.temperature, reading.humidity)
    except SenseError as e:
        logger.error("[ERROR] %s", e)
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="blesense demo")
    parser.add_argument("--attempts", type=int, default=1, help="Number of scan windows")
    parser.add_argument("--duration", type=float, default=5.0, help="Seconds per scan window")
    parser.add_argument("--name", type=str, default=None, help="Only list devices whose name contains this")
    parser.add_argument("--model", type=str, default="MJ_HT_V1", choices=sorted(SENSOR_MODELS), help="Sensor model")
    parser.add_argument("--stop-count", type=int, default=None, help="Stop scanning once this many sensors of --model are found")
    parser.add_argument("--device", type=int, default=None, help="Device ID to operate on")
    parser.add_argument("--action", choices=["list", "dump", "metadata", "sensor"], default="list")
    parser.add_argument("--timeout", type=float, default=30.0, help="Seconds to wait for sensor notifications")
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.warning("\n\nStopped by user.")
