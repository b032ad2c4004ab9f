"""Tests for the request executor retry policy (mocked transport)."""

from unittest.mock import MagicMock

import pytest

from pymbtcp.executor import RequestExecutor
from pymbtcp.types import Outcome

COMMAND = bytes.fromhex("19 B2 00 00 00 06 01 03 00 00 00 01")
HEADER = bytes.fromhex("19 B2 00 00 00 05 01 03")
BODY = bytes.fromhex("02 00 2A")


@pytest.fixture
def transport() -> MagicMock:
    t = MagicMock()
    t.connect.return_value = Outcome()
    t.try_recv_exact.return_value = HEADER
    t.recv_exact.return_value = BODY
    return t


def test_exchange_returns_header_and_body(transport: MagicMock) -> None:
    response = RequestExecutor(transport).exchange(COMMAND)
    assert response == HEADER + BODY
    transport.send.assert_called_once_with(COMMAND)
    transport.try_recv_exact.assert_called_once_with(8)
    transport.recv_exact.assert_called_once_with(3)
    transport.connect.assert_not_called()


def test_send_failure_reconnects_and_resends(transport: MagicMock) -> None:
    transport.send.side_effect = [BrokenPipeError("broken pipe"), None]
    response = RequestExecutor(transport).exchange(COMMAND)
    assert response == HEADER + BODY
    assert transport.send.call_count == 2
    transport.connect.assert_called_once()


def test_second_send_failure_propagates(transport: MagicMock) -> None:
    transport.send.side_effect = [BrokenPipeError("first"), BrokenPipeError("second"), None]
    with pytest.raises(BrokenPipeError, match="second"):
        RequestExecutor(transport).exchange(COMMAND)
    assert transport.send.call_count == 2


def test_failed_reconnect_propagates(transport: MagicMock) -> None:
    transport.send.side_effect = BrokenPipeError("broken pipe")
    transport.connect.return_value = Outcome().fail("Connection refused")
    with pytest.raises(ConnectionError, match="Connection refused"):
        RequestExecutor(transport).exchange(COMMAND)
    assert transport.send.call_count == 1


def test_unreadable_header_resends_once(transport: MagicMock) -> None:
    transport.try_recv_exact.return_value = None
    transport.recv_exact.side_effect = [HEADER, BODY]
    response = RequestExecutor(transport).exchange(COMMAND)
    assert response == HEADER + BODY
    assert transport.send.call_count == 2
    transport.connect.assert_called_once()


def test_header_timeout_after_resend_propagates(transport: MagicMock) -> None:
    transport.try_recv_exact.return_value = None
    transport.recv_exact.side_effect = TimeoutError("timed out")
    with pytest.raises(TimeoutError):
        RequestExecutor(transport).exchange(COMMAND)
    assert transport.send.call_count == 2
