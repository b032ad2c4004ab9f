"""Exceptions for pymbtcp: caller mistakes and hard connection failures.

Recoverable runtime conditions (timeouts, refused connections, check-head
mismatches) are reported through Outcome objects, not raised.
"""


class PyMBTCPError(Exception):
    """Base exception for pymbtcp."""

    pass


class InvalidAddressError(PyMBTCPError):
    """Raised when an address, station number or function code is malformed."""

    def __init__(self, address: object, message: str | None = None) -> None:
        self.address = address
        self._msg = message or f"Invalid address: {address!r}"
        super().__init__(self._msg)


class UnsupportedDataTypeError(PyMBTCPError):
    """Raised when a data type is not one of the supported register types."""

    def __init__(self, data_type: object, message: str | None = None) -> None:
        self.data_type = data_type
        self._msg = message or f"Unsupported data type: {data_type!r}"
        super().__init__(self._msg)


class FrameError(PyMBTCPError):
    """Raised when a request frame cannot be built or parsed."""

    pass


class ModbusIOError(PyMBTCPError):
    """Raised when a connection cannot be established on an explicit connect()."""

    def __init__(
        self,
        message: str,
        *,
        host: str | None = None,
        port: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(message)
