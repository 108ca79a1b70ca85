"""
Per-device connection session.

A ConnectionSession owns one peripheral handle for the duration of an
operation and drives connect, read and subscribe against it with retries.
"""

import asyncio
import logging
from enum import Enum, auto
from typing import AsyncIterator, Awaitable, Callable, Optional

from .constants import (
    BACKOFF_BASE,
    CONNECT_ATTEMPTS,
    OPERATION_TIMEOUT,
    READ_ATTEMPTS,
    READ_PACING_DELAY,
    READ_SETTLE_DELAY,
    SUBSCRIBE_ATTEMPTS,
    SUBSCRIBE_RETRY_DELAY,
)
from .errors import (
    DisconnectError,
    RadioError,
    ReadError,
    RetriesExhaustedError,
    SubscribeError,
    UnsupportedOperationError,
)
from .interfaces import Peripheral
from .models import CharacteristicDescriptor, CharProperty, DeviceRecord, Notification
from .retry import RetryExhausted, RetryPolicy, with_timeout

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Connection state of a session."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    FAILED = auto()


def require_property(
    descriptor: CharacteristicDescriptor,
    flag: CharProperty,
    address: Optional[str] = None,
) -> None:
    """Raise UnsupportedOperationError unless the descriptor has `flag`."""
    if not descriptor.supports(flag):
        raise UnsupportedOperationError(
            f"Characteristic does not support {flag.name}",
            address=address,
            uuid=descriptor.uuid,
        )


class ConnectionSession:
    """
    Connect/disconnect/read/subscribe against one peripheral.

    Usage:
        session = ConnectionSession.for_record(record)
        await session.connect()
        value = await session.read_characteristic(descriptor)
        await session.disconnect()
    """

    def __init__(
        self,
        peripheral: Peripheral,
        address: Optional[str] = None,
        connect_policy: Optional[RetryPolicy] = None,
        read_policy: Optional[RetryPolicy] = None,
        subscribe_policy: Optional[RetryPolicy] = None,
        operation_timeout: Optional[float] = OPERATION_TIMEOUT,
        read_settle_delay: float = READ_SETTLE_DELAY,
        read_pacing_delay: float = READ_PACING_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize a session.

        Args:
            peripheral: Handle of the device to talk to
            address: Device address used in logs and errors (defaults to the peripheral's)
            connect_policy: Retry policy for connecting (3 attempts, 2/4/8 s backoff)
            read_policy: Retry policy for reads (3 attempts, exponential backoff)
            subscribe_policy: Retry policy for subscriptions (3 attempts, fixed 2 s delay)
            operation_timeout: Bound on every single radio call
            read_settle_delay: Wait before the first read attempt
            read_pacing_delay: Wait after a successful read
            sleep: Coroutine used for every wait
        """
        self.peripheral = peripheral
        self.address = address or peripheral.address
        self.operation_timeout = operation_timeout
        self.read_settle_delay = read_settle_delay
        self.read_pacing_delay = read_pacing_delay
        self.sleep = sleep
        self.connect_policy = connect_policy or RetryPolicy.exponential(
            CONNECT_ATTEMPTS, BACKOFF_BASE,
            sleep_after_final=True, operation_timeout=operation_timeout, sleep=sleep,
        )
        self.read_policy = read_policy or RetryPolicy.exponential(
            READ_ATTEMPTS, BACKOFF_BASE,
            operation_timeout=operation_timeout, sleep=sleep,
        )
        self.subscribe_policy = subscribe_policy or RetryPolicy.fixed(
            SUBSCRIBE_ATTEMPTS, SUBSCRIBE_RETRY_DELAY,
            operation_timeout=operation_timeout, sleep=sleep,
        )
        self.state = SessionState.DISCONNECTED

    @classmethod
    def for_record(cls, record: DeviceRecord, **kwargs) -> "ConnectionSession":
        """Create a session on a registry record's peripheral handle."""
        return cls(record.peripheral, address=record.mac_address, **kwargs)

    async def is_connected(self) -> bool:
        """Ask the radio. A link whose state cannot be queried counts as down."""
        try:
            connected = await with_timeout(self.peripheral.is_connected(), self.operation_timeout)
        except (RadioError, asyncio.TimeoutError) as err:
            logger.warning("Could not query connection state of %s: %r", self.address, err)
            connected = False
        if not connected and self.state == SessionState.CONNECTED:
            logger.info("Device %s dropped the connection", self.address)
            self.state = SessionState.DISCONNECTED
        return connected

    async def connect(self) -> None:
        """
        Connect with retries. No-op if already connected.

        Raises:
            RetriesExhaustedError: If every attempt failed.
        """
        if await self.is_connected():
            self.state = SessionState.CONNECTED
            return

        logger.info("Connecting to device with MAC=%s", self.address)
        self.state = SessionState.CONNECTING
        try:
            await self.connect_policy.run(
                self.peripheral.connect, label=f"connect to {self.address}"
            )
        except RetryExhausted as err:
            self.state = SessionState.FAILED
            logger.error(
                "Failed to connect to device %s after %d attempts", self.address, err.attempts
            )
            raise RetriesExhaustedError(
                f"Failed to connect after {err.attempts} attempts",
                address=self.address,
                attempts=err.attempts,
            ) from err.last_error
        self.state = SessionState.CONNECTED
        logger.info("Connected to device with MAC=%s", self.address)

    async def ensure_connected(self) -> None:
        """Reconnect if the link went down."""
        if not await self.is_connected():
            logger.info("Not connected to device %s, reconnecting...", self.address)
            await self.connect()

    async def disconnect(self) -> None:
        """
        Disconnect from the device.

        Raises:
            DisconnectError: If the radio refused. The session state is left as is.
        """
        try:
            await with_timeout(self.peripheral.disconnect(), self.operation_timeout)
        except (RadioError, asyncio.TimeoutError) as err:
            logger.warning("Failed to disconnect from device %s: %r", self.address, err)
            raise DisconnectError("Failed to disconnect", address=self.address) from err
        self.state = SessionState.DISCONNECTED
        logger.info("Disconnected from device with MAC=%s", self.address)

    async def read_characteristic(self, descriptor: CharacteristicDescriptor) -> bytes:
        """
        Read a characteristic value.

        Reconnects if needed, waits a settle delay, retries failed reads with
        exponential backoff and paces successful reads.

        Raises:
            UnsupportedOperationError: If the characteristic is not readable.
            ConnectError: If reconnecting failed.
            ReadError: If every read attempt failed.
        """
        require_property(descriptor, CharProperty.READ, self.address)
        await self.ensure_connected()
        await self.sleep(self.read_settle_delay)

        # Only the radio call is bounded. A reconnect runs under connect_policy.
        async def attempt() -> bytes:
            await self.ensure_connected()
            return await self.read_policy.bounded(self.peripheral.read(descriptor))

        try:
            value = await self.read_policy.run(
                attempt, label=f"read {descriptor.uuid}", bound=False
            )
        except RetryExhausted as err:
            raise ReadError(
                f"Failed to read characteristic after {err.attempts} attempts",
                address=self.address,
                uuid=descriptor.uuid,
            ) from err.last_error

        logger.debug("Read %d bytes from %s on %s", len(value), descriptor.uuid, self.address)
        await self.sleep(self.read_pacing_delay)
        return bytes(value)

    async def subscribe(self, descriptor: CharacteristicDescriptor) -> None:
        """
        Enable notifications for a characteristic.

        Raises:
            UnsupportedOperationError: If the characteristic cannot notify.
            ConnectError: If reconnecting failed.
            SubscribeError: If every subscribe attempt failed.
        """
        require_property(descriptor, CharProperty.NOTIFY, self.address)

        async def attempt() -> None:
            await self.ensure_connected()
            await self.subscribe_policy.bounded(self.peripheral.subscribe(descriptor))

        try:
            await self.subscribe_policy.run(
                attempt, label=f"subscribe {descriptor.uuid}", bound=False
            )
        except RetryExhausted as err:
            raise SubscribeError(
                f"Failed to subscribe after {err.attempts} attempts",
                address=self.address,
                uuid=descriptor.uuid,
            ) from err.last_error
        logger.info("Subscribed to characteristic %s on %s", descriptor.uuid, self.address)

    def clear_notifications(self) -> None:
        """Drop notifications received before this point."""
        self.peripheral.clear_notifications()

    def notifications(self) -> AsyncIterator[Notification]:
        return self.peripheral.notifications()
