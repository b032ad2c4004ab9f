"""Transport: owns the TCP socket to one endpoint and its connection state."""

import logging
import socket

from .types import Endpoint, Outcome

logger = logging.getLogger(__name__)


class Transport:
    """
    Single TCP connection to a Modbus/TCP endpoint.

    Not shared between clients and never pooled; connect() always replaces the
    current socket.
    """

    def __init__(self, endpoint: Endpoint) -> None:
        self._endpoint = endpoint
        self._sock: socket.socket | None = None

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> Outcome[None]:
        """Open a new connection, closing any existing one first."""
        result: Outcome[None] = Outcome()
        self.close()
        ep = self._endpoint
        try:
            sock = socket.create_connection((ep.host, ep.port), timeout=ep.timeout_s)
        except OSError as e:
            logger.warning("Connect to %s:%s failed: %s", ep.host, ep.port, e)
            return result.fail(_describe(e)).finish()
        try:
            sock.settimeout(ep.timeout_s)
        except OSError as e:
            _safe_close(sock)
            return result.fail(_describe(e)).finish()
        self._sock = sock
        logger.debug("Connected to %s:%s", ep.host, ep.port)
        return result.finish()

    def ensure_connected(self) -> Outcome[None]:
        if self.connected:
            return Outcome()
        return self.connect()

    def close(self) -> None:
        if self._sock is not None:
            _safe_close(self._sock)
            self._sock = None
            logger.debug("Closed connection to %s:%s", self._endpoint.host, self._endpoint.port)

    def send(self, data: bytes) -> None:
        self._require().sendall(data)

    def recv_exact(self, n: int) -> bytes:
        """Read exactly n bytes; raise ConnectionResetError if the peer closes first."""
        sock = self._require()
        buf = bytearray()
        while len(buf) < n:
            chunk = sock.recv(n - len(buf))
            if not chunk:
                raise ConnectionResetError(f"connection closed after {len(buf)} of {n} bytes")
            buf.extend(chunk)
        return bytes(buf)

    def try_recv_exact(self, n: int) -> bytes | None:
        """recv_exact that logs and returns None instead of raising."""
        try:
            return self.recv_exact(n)
        except OSError as e:
            logger.warning("Read of %d bytes from %s:%s failed: %s", n, self._endpoint.host, self._endpoint.port, e)
            return None

    def _require(self) -> socket.socket:
        if self._sock is None:
            raise ConnectionError("not connected")
        return self._sock


def _safe_close(sock: socket.socket) -> None:
    try:
        sock.close()
    except OSError as e:
        logger.warning("Error closing socket: %s", e)


def _describe(e: OSError) -> str:
    if isinstance(e, TimeoutError):
        return "timed out"
    return str(e) or e.__class__.__name__
