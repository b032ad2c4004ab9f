"""Tests for byte-order conversion, typed decode/encode and bit unpacking."""

import struct

import pytest

from pymbtcp import values
from pymbtcp.errors import UnsupportedDataTypeError
from pymbtcp.types import ByteOrder, DataType


@pytest.mark.parametrize(
    ("order", "expected4", "expected8"),
    [
        (ByteOrder.ABCD, "01 02 03 04", "01 02 03 04 05 06 07 08"),
        (ByteOrder.BADC, "02 01 04 03", "02 01 04 03 06 05 08 07"),
        (ByteOrder.CDAB, "03 04 01 02", "07 08 05 06 03 04 01 02"),
        (ByteOrder.DCBA, "04 03 02 01", "08 07 06 05 04 03 02 01"),
    ],
)
def test_reorder(order: ByteOrder, expected4: str, expected8: str) -> None:
    four = bytes.fromhex("01 02 03 04")
    eight = bytes.fromhex("01 02 03 04 05 06 07 08")
    assert values.reorder(four, order) == bytes.fromhex(expected4)
    assert values.reorder(eight, order) == bytes.fromhex(expected8)
    # every ordering is its own inverse
    assert values.reorder(values.reorder(eight, order), order) == eight


@pytest.mark.parametrize("order", list(ByteOrder))
def test_reorder_leaves_other_lengths(order: ByteOrder) -> None:
    assert values.reorder(b"\x12\x34", order) == b"\x12\x34"
    assert values.reorder(b"\x01\x02\x03\x04\x05\x06", order) == b"\x01\x02\x03\x04\x05\x06"


def test_decode_encode_types() -> None:
    assert values.decode(DataType.INT16, b"\xff\xfe") == -2
    assert values.decode(DataType.UINT16, b"\xff\xfe") == 65534
    assert values.decode(DataType.INT32, struct.pack(">i", -70000)) == -70000
    assert values.decode(DataType.FLOAT, struct.pack(">f", 0.25)) == 0.25
    assert values.decode(DataType.BOOL, b"\x00\x01") is True
    assert values.encode(DataType.UINT32, 0xDEADBEEF) == b"\xde\xad\xbe\xef"
    assert values.encode(DataType.INT64, -1) == b"\xff" * 8


def test_encode_out_of_range_raises() -> None:
    with pytest.raises(ValueError, match="does not fit"):
        values.encode(DataType.INT16, 40000)


def test_decode_unsupported_type() -> None:
    with pytest.raises(UnsupportedDataTypeError):
        values.decode("string", b"\x00\x00")  # type: ignore[arg-type]


def test_extract_from_block() -> None:
    block = struct.pack(">h", -5) + b"\x00\x00" + struct.pack(">i", 123456) + b"\x00" * 4 + struct.pack(">f", 1.5)
    assert values.extract(DataType.INT16, 0, 0, block) == -5
    assert values.extract(DataType.INT32, 0, 2, block) == 123456
    assert values.extract(DataType.FLOAT, 0, 6, block) == 1.5
    assert values.extract(DataType.UINT16, 100, 103, block) == 0xE240


def test_extract_applies_byte_order_per_value() -> None:
    block = b"\x00\x07" + values.reorder(struct.pack(">i", 99), ByteOrder.CDAB)
    assert values.extract(DataType.INT32, 10, 11, block, ByteOrder.CDAB) == 99
    assert values.extract(DataType.INT16, 10, 10, block, ByteOrder.CDAB) == 7


def test_extract_outside_block_raises() -> None:
    with pytest.raises(ValueError):
        values.extract(DataType.INT32, 0, 1, b"\x00\x00\x00\x00")


def test_extract_bit_vector() -> None:
    packed = bytes([0b00000101])
    assert values.extract_bit(0, 0, packed) is True
    assert values.extract_bit(0, 1, packed) is False
    assert values.extract_bit(0, 2, packed) is True


def test_extract_bit_second_byte_and_offset() -> None:
    packed = bytes([0x00, 0b10000010])
    assert values.extract_bit(100, 109, packed) is True
    assert values.extract_bit(100, 115, packed) is True
    assert values.extract_bit(100, 108, packed) is False
    assert values.extract_bit(100, 140, packed) is False


def test_pack_bits_lsb_first() -> None:
    assert values.pack_bits([True, False, True]) == b"\x05"
    assert values.pack_bits([False] * 8 + [True]) == b"\x00\x01"
