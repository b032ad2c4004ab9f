"""Value codec: byte-order conversion and typed decode/encode of register bytes.

Canonical byte order inside the package is big-endian (ABCD). Values only pass
through reorder() on their way to or from the wire.
"""

import struct

from .errors import UnsupportedDataTypeError
from .types import ByteOrder, DataType


def _swap_bytes_in_words(data: bytes) -> bytes:
    out = bytearray(len(data))
    out[0::2] = data[1::2]
    out[1::2] = data[0::2]
    return bytes(out)


def _reverse_words(data: bytes) -> bytes:
    words = [data[i : i + 2] for i in range(0, len(data), 2)]
    return b"".join(reversed(words))


def reorder(data: bytes, byte_order: ByteOrder) -> bytes:
    """
    Convert a 4- or 8-byte value between ABCD and the given byte order.

    Every ordering is its own inverse, so the same call serves both directions.
    Other lengths (single registers, raw blocks) are returned unchanged.
    """
    data = bytes(data)
    if len(data) not in (4, 8):
        return data
    if byte_order == ByteOrder.ABCD:
        return data
    if byte_order == ByteOrder.BADC:
        return _swap_bytes_in_words(data)
    if byte_order == ByteOrder.CDAB:
        return _reverse_words(data)
    if byte_order == ByteOrder.DCBA:
        return data[::-1]
    raise ValueError(f"Unknown byte order: {byte_order!r}")


def decode(data_type: DataType, data: bytes) -> bool | int | float:
    """Decode canonical (big-endian) bytes as data_type."""
    if data_type == DataType.BOOL:
        return any(data)
    try:
        fmt = data_type.struct_format
    except (AttributeError, KeyError):
        raise UnsupportedDataTypeError(data_type) from None
    return struct.unpack(fmt, bytes(data[: struct.calcsize(fmt)]))[0]


def encode(data_type: DataType, value: bool | int | float) -> bytes:
    """Encode value as canonical (big-endian) bytes for data_type."""
    if data_type == DataType.BOOL:
        return b"\x00\x01" if value else b"\x00\x00"
    try:
        fmt = data_type.struct_format
    except (AttributeError, KeyError):
        raise UnsupportedDataTypeError(data_type) from None
    try:
        return struct.pack(fmt, value)
    except struct.error as e:
        raise ValueError(f"Value {value!r} does not fit {data_type.value}: {e}") from e


def extract(
    data_type: DataType,
    begin_address: int,
    address: int,
    registers: bytes,
    byte_order: ByteOrder = ByteOrder.ABCD,
) -> bool | int | float:
    """
    Decode the value at address out of a register block read from begin_address.

    The block is raw wire bytes; the slice is reordered before decoding.
    """
    if data_type == DataType.BOOL:
        return extract_bit(begin_address, address, registers)
    offset = 2 * (address - begin_address)
    width = 2 * data_type.registers
    chunk = registers[offset : offset + width]
    if offset < 0 or len(chunk) != width:
        raise ValueError(
            f"Address {address} ({data_type.value}) is outside the block starting at {begin_address}"
        )
    return decode(data_type, reorder(chunk, byte_order))


def extract_bit(begin_address: int, address: int, packed: bytes) -> bool:
    """
    Return the coil/discrete bit for address from a byte-packed bit block.

    Bit i of the block lives in byte i // 8 at bit position i % 8, with bit 0
    the least significant. Positions past the block read as False.
    """
    i = address - begin_address
    if i < 0:
        raise ValueError(f"Address {address} precedes block start {begin_address}")
    index, bit = divmod(i, 8)
    if index >= len(packed):
        return False
    return bool((packed[index] >> bit) & 1)


def pack_bits(bits: list[bool]) -> bytes:
    """Pack booleans LSB-first into bytes (the coil response layout)."""
    out = bytearray((len(bits) + 7) // 8)
    for i, b in enumerate(bits):
        if b:
            out[i // 8] |= 1 << (i % 8)
    return bytes(out)
