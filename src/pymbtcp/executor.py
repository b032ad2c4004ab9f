"""Request executor: one locked request/response exchange with a single reconnect retry."""

import logging
import threading

from . import frame
from .transport import Transport
from .types import Outcome

logger = logging.getLogger(__name__)


class RequestExecutor:
    """
    Serializes exchanges on a Transport.

    The lock covers the whole send/receive cycle so concurrent callers on one
    client never interleave bytes on the socket.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._lock = threading.Lock()

    def connect(self) -> Outcome[None]:
        with self._lock:
            return self._transport.connect()

    def ensure_connected(self) -> Outcome[None]:
        with self._lock:
            return self._transport.ensure_connected()

    def close(self) -> None:
        with self._lock:
            self._transport.close()

    def exchange(self, command: bytes) -> bytes:
        """
        Send command and return the full response frame (header + body).

        A failed send or header read triggers one reconnect and resend; the
        second failure propagates as OSError.
        """
        with self._lock:
            try:
                self._transport.send(command)
            except OSError as e:
                logger.warning("Send failed, reconnecting once: %s", e)
                self._reconnect()
                self._transport.send(command)

            header = self._transport.try_recv_exact(frame.HEADER_SIZE)
            if header is None:
                logger.warning("Response header unreadable, reconnecting and resending")
                self._reconnect()
                self._transport.send(command)
                header = self._transport.recv_exact(frame.HEADER_SIZE)

            body = self._transport.recv_exact(frame.body_length(header))
            logger.debug("Exchange: %s -> %s", frame.to_hex(command), frame.to_hex(header + body))
            return header + body

    def _reconnect(self) -> None:
        result = self._transport.connect()
        if not result.is_success:
            raise ConnectionError(f"reconnect failed: {result.err}")
