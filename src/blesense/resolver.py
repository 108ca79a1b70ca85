"""
Characteristic discovery and lookup.
"""

import asyncio
import logging
from typing import Optional

from .constants import normalize_uuid
from .errors import CharacteristicNotFoundError, DiscoveryError, RadioError
from .models import (
    CharacteristicDescriptor,
    CharProperty,
    ServiceDescriptor,
    ServiceTree,
)
from .retry import with_timeout
from .session import ConnectionSession, require_property

logger = logging.getLogger(__name__)

__all__ = ["discover", "find", "resolve", "require_property", "log_tree", "readable"]


async def discover(session: ConnectionSession) -> ServiceTree:
    """
    Run GATT discovery on a connected session and snapshot the result.

    Raises:
        DiscoveryError: If the session is not connected or discovery failed.
    """
    if not await session.is_connected():
        raise DiscoveryError("Discovery requires a connected session", address=session.address)

    try:
        await with_timeout(session.peripheral.discover_services(), session.operation_timeout)
    except (RadioError, asyncio.TimeoutError) as err:
        logger.warning("Failed to discover services on device %s: %r", session.address, err)
        raise DiscoveryError("Failed to discover services", address=session.address) from err

    services = []
    for service in session.peripheral.services():
        service_uuid = normalize_uuid(service.uuid)
        characteristics = tuple(
            CharacteristicDescriptor(
                service_uuid=service_uuid,
                uuid=normalize_uuid(char.uuid),
                properties=char.properties,
                handle=char.handle,
            )
            for char in service.characteristics
        )
        services.append(ServiceDescriptor(uuid=service_uuid, characteristics=characteristics))

    tree = ServiceTree(address=session.address, services=tuple(services))
    logger.debug("Discovered %d services on %s", len(tree), session.address)
    return tree


def find(
    tree: ServiceTree, service_uuid, characteristic_uuid
) -> Optional[CharacteristicDescriptor]:
    """First characteristic matching the UUID pair, ignoring hex digit case."""
    service_uuid = normalize_uuid(service_uuid)
    characteristic_uuid = normalize_uuid(characteristic_uuid)
    for service in tree.services:
        if normalize_uuid(service.uuid) != service_uuid:
            continue
        for characteristic in service.characteristics:
            if normalize_uuid(characteristic.uuid) == characteristic_uuid:
                return characteristic
    return None


def resolve(tree: ServiceTree, service_uuid, characteristic_uuid) -> CharacteristicDescriptor:
    """
    Like find(), but raise when nothing matches.

    Raises:
        CharacteristicNotFoundError: Carries the requested characteristic UUID.
    """
    characteristic = find(tree, service_uuid, characteristic_uuid)
    if characteristic is None:
        raise CharacteristicNotFoundError(
            f"Characteristic {normalize_uuid(characteristic_uuid)} not found "
            f"in service {normalize_uuid(service_uuid)}",
            address=tree.address,
            uuid=normalize_uuid(characteristic_uuid),
            service_uuid=normalize_uuid(service_uuid),
        )
    return characteristic


def log_tree(tree: ServiceTree) -> None:
    """Log every service and characteristic of a tree at info level."""
    for service in tree.services:
        logger.info("Service UUID: %s", service.uuid)
        for characteristic in service.characteristics:
            flags = ", ".join(characteristic.properties.names()) or "none"
            logger.info("  Characteristic UUID: %s, Properties: %s", characteristic.uuid, flags)


def readable(tree: ServiceTree):
    """Characteristics of the tree that support READ."""
    return [c for c in tree.characteristics() if c.supports(CharProperty.READ)]
