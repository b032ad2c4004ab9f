"""Normalize and validate register addresses, station numbers and function codes."""

import re

from .errors import InvalidAddressError
from .types import MAX_REGISTERS_PER_READ

# Decimal register offset, optional surrounding whitespace
_ADDRESS_PATTERN = re.compile(r"^\s*(\d{1,5})\s*$")


def normalize_address(raw: str | int) -> int:
    """
    Convert an address given as int or decimal string to a register offset.

    Raises InvalidAddressError for non-numeric input or offsets outside 0-65535.
    """
    if isinstance(raw, bool):
        raise InvalidAddressError(raw, f"Address must be numeric, got {raw!r}")
    if isinstance(raw, int):
        num = raw
    else:
        m = _ADDRESS_PATTERN.match(str(raw))
        if not m:
            raise InvalidAddressError(raw, f"Address must be numeric, got {raw!r}")
        num = int(m.group(1))
    if not 0 <= num <= 0xFFFF:
        raise InvalidAddressError(raw, f"Address out of range 0-65535: {num}")
    return num


def validate_station(station: int) -> int:
    """Check a station number (unit identifier) fits in one byte."""
    if not 0 <= station <= 0xFF:
        raise InvalidAddressError(station, f"Station number out of range 0-255: {station}")
    return station


def validate_function_code(function_code: int) -> int:
    """Check a request function code is 1-127."""
    # Exception responses set the high bit, so requests must leave it clear
    if not 1 <= function_code <= 0x7F:
        raise InvalidAddressError(function_code, f"Function code out of range 1-127: {function_code}")
    return function_code


def validate_count(count: int, limit: int = MAX_REGISTERS_PER_READ) -> int:
    """Check a register or bit count is between 1 and limit."""
    if not 1 <= count <= limit:
        raise InvalidAddressError(count, f"Register count out of range 1-{limit}: {count}")
    return count
