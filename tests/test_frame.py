"""Tests for request frame construction and response header checks."""

import pytest

from pymbtcp import frame
from pymbtcp.errors import FrameError

HEAD = b"\x19\xb2"


@pytest.mark.parametrize(
    ("address", "station", "function_code", "count"),
    [
        (0, 0, 1, 1),
        (1, 1, 2, 8),
        (100, 1, 3, 125),
        (0, 17, 5, 1),
        (0x1234, 255, 16, 64),
        (65535, 128, 3, 2),
    ],
)
def test_read_command_round_trip(address: int, station: int, function_code: int, count: int) -> None:
    cmd = frame.build_read_command(address, station, function_code, count, HEAD)
    assert len(cmd) == 12
    parsed = frame.parse_read_command(cmd)
    assert parsed == frame.ReadCommand(HEAD, station, function_code, address, count)


def test_read_command_bytes() -> None:
    cmd = frame.build_read_command(10, 1, 3, 2, HEAD)
    assert cmd == bytes.fromhex("19 B2 00 00 00 06 01 03 00 0A 00 02")


def test_length_field_counts_following_bytes() -> None:
    cmd = frame.build_write_command(0, b"\x00\x01" * 5, 1, 16, HEAD)
    assert cmd[4] * 256 + cmd[5] == len(cmd) - 6
    cmd = frame.build_read_command(0, 1, 3, 1, HEAD)
    assert cmd[4] * 256 + cmd[5] == len(cmd) - 6


def test_write_command_layout() -> None:
    cmd = frame.build_write_command(0x0102, b"\xAA\xBB\xCC\xDD", 2, 16, HEAD)
    assert cmd == bytes.fromhex("19 B2 00 00 00 0B 02 10 01 02 00 02 04 AA BB CC DD")


@pytest.mark.parametrize("data", [b"", b"\x01", b"\x01\x02\x03"])
def test_write_command_rejects_odd_or_empty(data: bytes) -> None:
    with pytest.raises(FrameError):
        frame.build_write_command(0, data, 1, 16, HEAD)


def test_write_command_rejects_too_many_registers() -> None:
    with pytest.raises(FrameError, match="too long"):
        frame.build_write_command(0, b"\x00\x00" * 124, 1, 16, HEAD)


def test_write_coil_values() -> None:
    on = frame.build_write_coil_command(7, True, 1, 5, HEAD)
    off = frame.build_write_coil_command(7, False, 1, 5, HEAD)
    assert on == bytes.fromhex("19 B2 00 00 00 06 01 05 00 07 FF 00")
    assert off == bytes.fromhex("19 B2 00 00 00 06 01 05 00 07 00 00")


def test_parse_read_command_rejects_bad_frames() -> None:
    cmd = frame.build_read_command(1, 1, 3, 1, HEAD)
    with pytest.raises(FrameError):
        frame.parse_read_command(cmd[:-1])
    with pytest.raises(FrameError, match="protocol id"):
        frame.parse_read_command(cmd[:2] + b"\x00\x01" + cmd[4:])


def test_body_length_from_header() -> None:
    header = bytes.fromhex("19 B2 00 00 00 07 01 03")
    assert frame.body_length(header) == 5
    with pytest.raises(FrameError):
        frame.body_length(bytes.fromhex("19 B2 00 00 00 01 01 03"))


def test_check_head_matches() -> None:
    response = bytes.fromhex("19 B2 00 00 00 05 01 03 02 00 2A")
    assert frame.check_head_matches(HEAD, response)
    assert not frame.check_head_matches(b"\x19\xb3", response)
    assert not frame.check_head_matches(HEAD, b"\x19")


def test_exception_code_detection() -> None:
    assert frame.exception_code(bytes.fromhex("19 B2 00 00 00 03 01 83 02")) == 2
    assert frame.exception_code(bytes.fromhex("19 B2 00 00 00 05 01 03 02 00 2A")) is None
    assert "illegal data address" in frame.describe_exception(2)
    assert "unknown" in frame.describe_exception(0x55)


def test_register_data_skips_header_and_byte_count() -> None:
    assert frame.register_data(bytes.fromhex("19 B2 00 00 00 05 01 03 02 00 2A")) == b"\x00\x2a"


def test_check_head_generator_range_and_seed() -> None:
    gen = frame.CheckHeadGenerator(seed=1)
    heads = [gen.next() for _ in range(500)]
    assert all(len(h) == 2 and h[0] < 255 and h[1] < 255 for h in heads)
    assert len(set(heads)) > 400
    again = frame.CheckHeadGenerator(seed=1)
    assert [again.next() for _ in range(500)] == heads


def test_to_hex() -> None:
    assert frame.to_hex(b"\x19\xb2\x00") == "19 B2 00"
