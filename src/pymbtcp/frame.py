"""Frame codec: build Modbus/TCP request frames and validate response headers.

Every frame starts with a 2-byte check head (in place of the MBAP transaction
id), a zero protocol id and a length field counting the bytes that follow it:

    check_head(2) | protocol_id(2) | length(2) | station(1) | function_code(1) | payload
"""

import random
import struct
from typing import NamedTuple

from .errors import FrameError

HEADER_SIZE = 8
# Header plus the byte-count octet that precedes register/bit data
DATA_OFFSET = HEADER_SIZE + 1

COIL_ON = 0xFF00
COIL_OFF = 0x0000

EXCEPTION_FLAG = 0x80

MAX_REGISTERS_PER_WRITE = 123

EXCEPTION_NAMES: dict[int, str] = {
    0x01: "illegal function",
    0x02: "illegal data address",
    0x03: "illegal data value",
    0x04: "server device failure",
    0x05: "acknowledge",
    0x06: "server device busy",
    0x08: "memory parity error",
    0x0A: "gateway path unavailable",
    0x0B: "gateway target device failed to respond",
}

_READ_FRAME = struct.Struct(">2sHHBBHH")


class ReadCommand(NamedTuple):
    """Decoded fields of a read request frame."""

    check_head: bytes
    station: int
    function_code: int
    address: int
    count: int


class CheckHeadGenerator:
    """Per-client source of 2-byte check heads, each byte in [0, 255)."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def next(self) -> bytes:
        return bytes((self._rng.randrange(255), self._rng.randrange(255)))


def _check(check_head: bytes) -> bytes:
    if len(check_head) != 2:
        raise FrameError(f"check head must be 2 bytes, got {len(check_head)}")
    return bytes(check_head)


def build_read_command(address: int, station: int, function_code: int, count: int, check_head: bytes) -> bytes:
    """Read coils/inputs/registers: address(2) + count(2), 12 bytes total."""
    return _READ_FRAME.pack(_check(check_head), 0, 6, station, function_code, address, count)


def build_write_command(address: int, data: bytes, station: int, function_code: int, check_head: bytes) -> bytes:
    """Write multiple registers: address(2) + register count(2) + byte count(1) + data."""
    if not data or len(data) % 2:
        raise FrameError(f"register write needs a non-empty even number of bytes, got {len(data)}")
    if len(data) > 2 * MAX_REGISTERS_PER_WRITE:
        raise FrameError(f"register write too long: {len(data)} bytes, limit {2 * MAX_REGISTERS_PER_WRITE}")
    head = struct.pack(
        ">2sHHBBHHB",
        _check(check_head),
        0,
        7 + len(data),
        station,
        function_code,
        address,
        len(data) // 2,
        len(data),
    )
    return head + bytes(data)


def build_write_coil_command(address: int, value: bool, station: int, function_code: int, check_head: bytes) -> bytes:
    """Write single coil: address(2) + FF00 (on) or 0000 (off)."""
    return _READ_FRAME.pack(
        _check(check_head), 0, 6, station, function_code, address, COIL_ON if value else COIL_OFF
    )


def parse_read_command(frame: bytes) -> ReadCommand:
    if len(frame) != _READ_FRAME.size:
        raise FrameError(f"read command must be {_READ_FRAME.size} bytes, got {len(frame)}")
    check_head, protocol_id, length, station, function_code, address, count = _READ_FRAME.unpack(frame)
    if protocol_id != 0:
        raise FrameError(f"protocol id must be 0, got {protocol_id}")
    if length != len(frame) - 6:
        raise FrameError(f"length field {length} does not match frame size {len(frame)}")
    return ReadCommand(check_head, station, function_code, address, count)


def body_length(header: bytes) -> int:
    """Bytes still to read after the 8-byte response header."""
    if len(header) < HEADER_SIZE:
        raise FrameError(f"response header must be {HEADER_SIZE} bytes, got {len(header)}")
    length = header[4] * 256 + header[5] - 2
    if length < 0:
        raise FrameError(f"response length field too small: {header[4] * 256 + header[5]}")
    return length


def check_head_matches(check_head: bytes, response: bytes) -> bool:
    """True when the response echoes the two check-head bytes of the request."""
    return len(response) >= 2 and response[0] == check_head[0] and response[1] == check_head[1]


def exception_code(response: bytes) -> int | None:
    """Return the Modbus exception code if response is an exception reply."""
    if len(response) > HEADER_SIZE and response[7] & EXCEPTION_FLAG:
        return response[8]
    return None


def describe_exception(code: int) -> str:
    """Human-readable text for a Modbus exception code."""
    return f"Modbus exception 0x{code:02X} ({EXCEPTION_NAMES.get(code, 'unknown')})"


def register_data(response: bytes) -> bytes:
    """Register or packed-bit data of a read response."""
    return bytes(response[DATA_OFFSET:])


def to_hex(data: bytes) -> str:
    """Uppercase hex bytes separated by spaces."""
    return " ".join(f"{b:02X}" for b in data)
