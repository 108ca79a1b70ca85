"""Tests for payload decoders."""

import pytest
from blesense.decoder import (
    decode_field,
    decode_scaled_int16_le,
    decode_text,
    decode_uint8,
    decode_uint16_le,
)
from blesense.errors import DecodeError, TruncatedPayloadError
from blesense.models import MJ_HT_V1, FieldSpec


def test_decode_hundred():
    """Test little-endian 10000 decodes to 100.00."""
    assert decode_scaled_int16_le(bytes([0x10, 0x27])) == pytest.approx(100.0)


def test_decode_zero():
    assert decode_scaled_int16_le(bytes([0x00, 0x00])) == 0.0


def test_decode_negative():
    """Test signed values (-5.5 degrees)."""
    raw = (-550).to_bytes(2, "little", signed=True)
    assert decode_scaled_int16_le(raw) == pytest.approx(-5.5)


def test_decode_at_offset():
    data = bytes([0xFF, 0xFF, 0x10, 0x27])
    assert decode_scaled_int16_le(data, offset=2) == pytest.approx(100.0)


def test_decode_single_byte_is_truncated():
    with pytest.raises(TruncatedPayloadError) as excinfo:
        decode_scaled_int16_le(bytes([0x10]))

    assert excinfo.value.needed == 2
    assert excinfo.value.available == 1
    assert isinstance(excinfo.value, DecodeError)


def test_decode_offset_past_end_is_truncated():
    with pytest.raises(TruncatedPayloadError):
        decode_scaled_int16_le(bytes([0x10, 0x27, 0x00]), offset=2)


def test_decode_custom_scale():
    assert decode_scaled_int16_le(bytes([0xE8, 0x03]), scale=10.0) == pytest.approx(100.0)


def test_decode_uint8_and_uint16():
    assert decode_uint8(bytes([87])) == 87
    assert decode_uint16_le(bytes([0x00, 0x02])) == 512
    with pytest.raises(TruncatedPayloadError):
        decode_uint8(b"")


def test_decode_text_lossy():
    assert decode_text(b"MJ_HT_V1\x00\x00") == "MJ_HT_V1"
    assert decode_text(b"ok\xff") == "ok�"


def test_decode_field_uses_offset_and_scale():
    spec = FieldSpec(name="humidity", service_uuid="s", characteristic_uuid="c", offset=2)
    assert decode_field(bytes([0, 0, 0x6A, 0x12]), spec) == pytest.approx(47.14)


def test_decode_field_reports_characteristic():
    spec = MJ_HT_V1.field("temperature")
    with pytest.raises(TruncatedPayloadError) as excinfo:
        decode_field(b"\x01", spec)

    assert excinfo.value.uuid == spec.characteristic_uuid
