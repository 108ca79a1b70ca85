"""
Notification pipeline for subscription-only sensor fields.

Subscribes to the characteristics of a SensorModel and demultiplexes the
session's notification stream into named fields.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from .constants import (
    DEFAULT_COLLECT_TIMEOUT,
    SUBSCRIBE_SETTLE_DELAY,
    normalize_uuid,
)
from .decoder import decode_field
from .errors import CollectError, CollectTimeoutError
from .models import (
    MJ_HT_V1,
    CharacteristicDescriptor,
    SensorModel,
    SensorReading,
    ServiceTree,
)
from .resolver import resolve
from .session import ConnectionSession

logger = logging.getLogger(__name__)

READING_FIELDS = ("temperature", "humidity")


class NotificationPipeline:
    """
    Collect sensor fields pushed by a peripheral.

    Usage:
        pipeline = NotificationPipeline(session, MJ_HT_V1)
        await pipeline.subscribe_all(pipeline.resolve_descriptors(tree))
        reading = await pipeline.collect(timeout=30.0)
    """

    def __init__(
        self,
        session: ConnectionSession,
        model: SensorModel = MJ_HT_V1,
        settle_delay: float = SUBSCRIBE_SETTLE_DELAY,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.session = session
        self.model = model
        self.settle_delay = settle_delay
        self._sleep = sleep or session.sleep
        self._fields = model.by_characteristic()

    def resolve_descriptors(self, tree: ServiceTree) -> List[CharacteristicDescriptor]:
        """Map every field of the model onto the discovered tree."""
        return [
            resolve(tree, spec.service_uuid, spec.characteristic_uuid)
            for spec in self.model.fields
        ]

    async def subscribe_all(self, descriptors: Sequence[CharacteristicDescriptor]) -> None:
        """
        Subscribe to every descriptor, in order.

        Raises:
            UnsupportedOperationError: If a descriptor cannot notify.
            SubscribeError: From the first descriptor whose retries ran out.
        """
        await self.session.ensure_connected()
        # Peripherals often reject CCCD writes right after connecting.
        await self._sleep(self.settle_delay)
        # Values queued by an earlier subscription must not leak into this one.
        self.session.clear_notifications()
        for descriptor in descriptors:
            await self.session.subscribe(descriptor)

    async def collect_fields(
        self,
        required_fields: Iterable[str] = READING_FIELDS,
        timeout: float = DEFAULT_COLLECT_TIMEOUT,
    ) -> Dict[str, float]:
        """
        Consume notifications until every required field has a value.

        Only the first value per field is kept.

        Raises:
            CollectTimeoutError: If `timeout` elapsed first.
            CollectError: If the notification stream ended first.
            DecodeError: If a matching notification is too short.
        """
        required = set(required_fields)
        unknown = required - {spec.name for spec in self.model.fields}
        if unknown:
            raise ValueError(f"Fields not provided by {self.model.name}: {sorted(unknown)}")

        values: Dict[str, float] = {}
        try:
            await asyncio.wait_for(self._consume(required, values), timeout=timeout)
        except asyncio.TimeoutError as err:
            missing = required.difference(values)
            logger.warning(
                "Timed out after %.1fs waiting for %s from %s",
                timeout, ", ".join(sorted(missing)), self.session.address,
            )
            raise CollectTimeoutError(
                f"Timed out waiting for {', '.join(sorted(missing))}",
                address=self.session.address,
                missing=missing,
            ) from err

        if not required.issubset(values):
            missing = required.difference(values)
            raise CollectError(
                "Notification stream ended early",
                address=self.session.address,
                missing=missing,
            )
        return values

    async def collect(
        self,
        required_fields: Iterable[str] = READING_FIELDS,
        timeout: float = DEFAULT_COLLECT_TIMEOUT,
    ) -> SensorReading:
        """Collect a SensorReading. `required_fields` must cover temperature and humidity."""
        required = set(required_fields)
        if not set(READING_FIELDS) <= required:
            raise ValueError("A SensorReading needs both temperature and humidity")
        values = await self.collect_fields(required, timeout)
        return SensorReading.from_fields(values)

    async def _consume(self, required, values: Dict[str, float]) -> None:
        stream = self.session.notifications()
        try:
            async for notification in stream:
                spec = self._fields.get(normalize_uuid(notification.characteristic_uuid))
                if spec is None or spec.name in values:
                    continue
                values[spec.name] = decode_field(notification.value, spec)
                logger.debug(
                    "%s=%.2f from %s", spec.name, values[spec.name], self.session.address
                )
                if required.issubset(values):
                    return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
