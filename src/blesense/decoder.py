"""
Decoders for fixed-layout sensor payloads.

All functions are pure: bytes in, physical value out.
"""

import struct

from .errors import TruncatedPayloadError
from .models import FieldSpec


def _require(data: bytes, offset: int, size: int) -> None:
    if offset < 0:
        raise ValueError(f"Negative offset: {offset}")
    if len(data) < offset + size:
        raise TruncatedPayloadError(needed=offset + size, available=len(data))


def decode_scaled_int16_le(data: bytes, offset: int = 0, scale: float = 100.0) -> float:
    """
    Decode a little-endian signed 16-bit value and divide it by `scale`.

    Args:
        data: Raw payload
        offset: Byte offset of the value
        scale: Divisor applied to the raw integer

    Returns:
        The scaled value, e.g. b"\\x10\\x27" -> 100.0

    Raises:
        TruncatedPayloadError: If fewer than offset + 2 bytes are available.
    """
    _require(data, offset, 2)
    (raw,) = struct.unpack_from("<h", data, offset)
    return raw / scale


def decode_uint8(data: bytes, offset: int = 0) -> int:
    _require(data, offset, 1)
    return data[offset]


def decode_uint16_le(data: bytes, offset: int = 0) -> int:
    _require(data, offset, 2)
    (raw,) = struct.unpack_from("<H", data, offset)
    return raw


def decode_text(data: bytes) -> str:
    """UTF-8 decode, replacing invalid sequences and trailing NULs."""
    return bytes(data).rstrip(b"\x00").decode("utf-8", errors="replace")


def decode_field(data: bytes, spec: FieldSpec) -> float:
    """Decode one sensor field according to its FieldSpec."""
    try:
        return decode_scaled_int16_le(data, spec.offset, spec.scale)
    except TruncatedPayloadError as err:
        err.uuid = spec.characteristic_uuid
        raise
