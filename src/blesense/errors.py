"""
Exception hierarchy for blesense.

Every error carries the device address and, where one applies, the
characteristic UUID so callers can log a useful message and carry on.
"""

from typing import Optional


class SenseError(Exception):
    """Base class for all blesense errors."""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        uuid: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.address = address
        self.uuid = uuid

    def __str__(self) -> str:
        context = []
        if self.address is not None:
            context.append(f"device={self.address}")
        if self.uuid is not None:
            context.append(f"characteristic={self.uuid}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class RadioError(SenseError):
    """Transient failure reported by the radio driver. Retried locally."""


class ConnectError(SenseError):
    """The peripheral could not be reached."""


class RetriesExhaustedError(ConnectError):
    """Every connect attempt failed."""

    def __init__(self, message: str, address: Optional[str] = None, attempts: int = 0):
        super().__init__(message, address=address)
        self.attempts = attempts


class DisconnectError(ConnectError):
    """The radio refused to disconnect."""


class DiscoveryError(SenseError):
    """Service or characteristic enumeration failed."""


class NotFoundError(SenseError):
    """Base class for lookups that matched nothing."""


class CharacteristicNotFoundError(NotFoundError):
    """No characteristic in the discovered tree matches the requested UUID pair."""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        uuid: Optional[str] = None,
        service_uuid: Optional[str] = None,
    ):
        super().__init__(message, address=address, uuid=uuid)
        self.service_uuid = service_uuid


class DeviceNotFoundError(NotFoundError):
    """No device with the given registry ID."""

    def __init__(self, device_id: int):
        super().__init__(f"Device {device_id} not found")
        self.device_id = device_id


class UnsupportedOperationError(SenseError):
    """The characteristic lacks the property flag the operation needs."""


class ReadError(SenseError):
    """Reading a characteristic failed after all retries."""


class SubscribeError(SenseError):
    """Subscribing to a characteristic failed after all retries."""


class DecodeError(SenseError):
    """A payload could not be decoded."""


class TruncatedPayloadError(DecodeError):
    """The payload is shorter than the field being decoded."""

    def __init__(self, needed: int, available: int, uuid: Optional[str] = None):
        super().__init__(
            f"Payload truncated: need {needed} bytes, got {available}", uuid=uuid
        )
        self.needed = needed
        self.available = available


class CollectError(SenseError):
    """Notification collection ended without all required fields."""

    def __init__(self, message: str, address: Optional[str] = None, missing=()):
        super().__init__(message, address=address)
        self.missing = tuple(sorted(missing))


class CollectTimeoutError(CollectError):
    """The collection deadline elapsed before all required fields arrived."""
