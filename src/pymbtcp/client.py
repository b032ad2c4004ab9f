"""ModbusTcpClient: read/write/batch operations over one Modbus/TCP connection."""

import logging
import struct
import time
from collections.abc import Callable, Iterable, Iterator
from typing import Any, TypeVar

from . import frame, values
from .batch import BatchReader
from .errors import FrameError, ModbusIOError
from .executor import RequestExecutor
from .normalize import normalize_address, validate_count, validate_function_code, validate_station
from .transport import Transport
from .types import AddressSpec, BatchResult, ByteOrder, DataType, Endpoint, Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

VALIDATION_FAILED = "response validation failed"
TIMED_OUT = "timed out"


class ModbusTcpClient:
    """
    Modbus/TCP client owning a single connection.

    Every public operation returns an Outcome; timeouts, refused connections
    and mismatched responses are reported there instead of raised. Malformed
    addresses, odd write payloads and unknown data types raise.
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        timeout_ms: int = 1500,
        byte_order: ByteOrder | str = ByteOrder.ABCD,
        auto_open: bool = False,
        check_head_seed: int | None = None,
    ) -> None:
        self._endpoint = Endpoint(host=host, port=port, timeout_ms=timeout_ms, byte_order=ByteOrder(byte_order))
        self._auto_open = auto_open
        self._transport = Transport(self._endpoint)
        self._executor = RequestExecutor(self._transport)
        self._check_heads = frame.CheckHeadGenerator(check_head_seed)
        self._batch = BatchReader(self._read_block, self._endpoint.byte_order)

    @classmethod
    def from_endpoint(
        cls,
        endpoint: Endpoint,
        auto_open: bool = False,
        check_head_seed: int | None = None,
    ) -> "ModbusTcpClient":
        return cls(
            host=endpoint.host,
            port=endpoint.port,
            timeout_ms=endpoint.timeout_ms,
            byte_order=endpoint.byte_order,
            auto_open=auto_open,
            check_head_seed=check_head_seed,
        )

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def byte_order(self) -> ByteOrder:
        return self._endpoint.byte_order

    @property
    def connected(self) -> bool:
        return self._transport.connected

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> Outcome[None]:
        """(Re)open the TCP connection."""
        return self._executor.connect()

    def close(self) -> None:
        """Close the TCP connection."""
        self._executor.close()

    def __enter__(self) -> "ModbusTcpClient":
        result = self.connect()
        if not result.is_success:
            raise ModbusIOError(
                f"Failed to connect to {self._endpoint.host}:{self._endpoint.port}: {result.err}",
                host=self._endpoint.host,
                port=self._endpoint.port,
            )
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _finish_operation(self) -> None:
        """Runs after every public operation, whatever its result."""
        if self._auto_open:
            self.close()

    # ------------------------------------------------------------------
    # Exchange helpers
    # ------------------------------------------------------------------

    def _run(self, command: bytes, result: Outcome[Any]) -> bytes | None:
        """Connect if needed, exchange command and validate the response header."""
        conn = self._executor.ensure_connected()
        if not conn.is_success:
            result.merge_errors(conn)
            return None

        check_head = command[:2]
        result.request = frame.to_hex(command)
        try:
            response = self._executor.exchange(command)
        except TimeoutError:
            logger.warning("Request to %s:%s timed out", self._endpoint.host, self._endpoint.port)
            self._executor.close()
            result.fail(TIMED_OUT)
            return None
        except FrameError as e:
            # Stream position is unknown after a bad header
            self._executor.close()
            result.fail(str(e))
            return None
        except OSError as e:
            # A reset or half-read reply leaves the stream unusable
            self._executor.close()
            result.fail(str(e) or e.__class__.__name__)
            return None

        result.response = frame.to_hex(response)
        if not frame.check_head_matches(check_head, response):
            logger.warning(
                "Check head mismatch: sent %s, received %s",
                frame.to_hex(check_head),
                frame.to_hex(response[:2]),
            )
            result.fail(VALIDATION_FAILED)
            return None
        code = frame.exception_code(response)
        if code is not None:
            result.fail(frame.describe_exception(code))
            return None
        return response

    def _read_block(self, address: int, station: int, function_code: int, count: int) -> Outcome[bytes]:
        return self.read(address, station, function_code, count, apply_byte_order=False)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def read(
        self,
        address: str | int,
        station: int = 1,
        function_code: int = 3,
        count: int = 1,
        apply_byte_order: bool = True,
    ) -> Outcome[bytes]:
        """
        Read count registers (or bits) starting at address.

        The value is the data after the byte-count octet. With apply_byte_order,
        4- and 8-byte results are converted from the configured byte order to
        big-endian; otherwise the raw wire bytes are returned.
        """
        command = frame.build_read_command(
            normalize_address(address),
            validate_station(station),
            validate_function_code(function_code),
            validate_count(count),
            self._check_heads.next(),
        )
        result: Outcome[bytes] = Outcome()
        try:
            response = self._run(command, result)
            if response is None:
                return result.finish()
            if len(response) < frame.DATA_OFFSET:
                return result.fail(f"Short response: {len(response)} bytes").finish()
            data = frame.register_data(response)
            result.value = values.reorder(data, self.byte_order) if apply_byte_order else data
            return result.finish()
        finally:
            self._finish_operation()

    def write(
        self,
        address: str | int,
        data: bytes,
        station: int = 1,
        function_code: int = 16,
    ) -> Outcome[None]:
        """Write big-endian register bytes, converted to the configured byte order."""
        command = frame.build_write_command(
            normalize_address(address),
            values.reorder(bytes(data), self.byte_order),
            validate_station(station),
            validate_function_code(function_code),
            self._check_heads.next(),
        )
        result: Outcome[None] = Outcome()
        try:
            self._run(command, result)
            return result.finish()
        finally:
            self._finish_operation()

    def write_coil(
        self,
        address: str | int,
        value: bool,
        station: int = 1,
        function_code: int = 5,
    ) -> Outcome[None]:
        command = frame.build_write_coil_command(
            normalize_address(address),
            bool(value),
            validate_station(station),
            validate_function_code(function_code),
            self._check_heads.next(),
        )
        result: Outcome[None] = Outcome()
        try:
            self._run(command, result)
            return result.finish()
        finally:
            self._finish_operation()

    def batch_read(self, specs: Iterable[AddressSpec]) -> Outcome[list[BatchResult]]:
        """
        Read many addresses, coalescing each (function_code, station) group into
        as few register-range reads as possible.
        """
        try:
            return self._batch.read(specs)
        finally:
            self._finish_operation()

    def poll_iter(self, specs: list[AddressSpec], interval_s: float) -> Iterator[Outcome[list[BatchResult]]]:
        """Yield batch_read(specs) every interval_s seconds indefinitely."""
        while True:
            yield self.batch_read(specs)
            time.sleep(interval_s)

    # ------------------------------------------------------------------
    # Typed wrappers
    # ------------------------------------------------------------------

    def read_value(
        self,
        address: str | int,
        data_type: DataType | str,
        station: int = 1,
        function_code: int | None = None,
    ) -> Outcome[Any]:
        """Read one value of data_type; function code defaults to 1 for bits, 3 otherwise."""
        dt = DataType.parse(data_type)
        if function_code is None:
            function_code = 1 if dt == DataType.BOOL else 3
        read = self.read(address, station, function_code, count=dt.registers)
        if dt == DataType.BOOL:
            return _narrow(read, lambda data: values.extract_bit(0, 0, data))
        return _narrow(read, lambda data: values.decode(dt, data))

    def read_int16(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[int]:
        return self.read_value(address, DataType.INT16, station, function_code)

    def read_uint16(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[int]:
        return self.read_value(address, DataType.UINT16, station, function_code)

    def read_int32(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[int]:
        return self.read_value(address, DataType.INT32, station, function_code)

    def read_uint32(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[int]:
        return self.read_value(address, DataType.UINT32, station, function_code)

    def read_int64(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[int]:
        return self.read_value(address, DataType.INT64, station, function_code)

    def read_uint64(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[int]:
        return self.read_value(address, DataType.UINT64, station, function_code)

    def read_float(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[float]:
        return self.read_value(address, DataType.FLOAT, station, function_code)

    def read_double(self, address: str | int, station: int = 1, function_code: int = 3) -> Outcome[float]:
        return self.read_value(address, DataType.DOUBLE, station, function_code)

    def read_coil(self, address: str | int, station: int = 1, function_code: int = 1) -> Outcome[bool]:
        return self.read_value(address, DataType.BOOL, station, function_code)

    def read_discrete(self, address: str | int, station: int = 1, function_code: int = 2) -> Outcome[bool]:
        return self.read_value(address, DataType.BOOL, station, function_code)

    def write_value(
        self,
        address: str | int,
        value: bool | int | float,
        data_type: DataType | str,
        station: int = 1,
        function_code: int | None = None,
    ) -> Outcome[None]:
        """Write one value of data_type; bits go out as a single-coil write."""
        dt = DataType.parse(data_type)
        if dt == DataType.BOOL:
            return self.write_coil(address, bool(value), station, function_code or 5)
        return self.write(address, values.encode(dt, value), station, function_code or 16)

    def write_int16(self, address: str | int, value: int, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.INT16, station)

    def write_uint16(self, address: str | int, value: int, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.UINT16, station)

    def write_int32(self, address: str | int, value: int, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.INT32, station)

    def write_uint32(self, address: str | int, value: int, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.UINT32, station)

    def write_int64(self, address: str | int, value: int, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.INT64, station)

    def write_uint64(self, address: str | int, value: int, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.UINT64, station)

    def write_float(self, address: str | int, value: float, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.FLOAT, station)

    def write_double(self, address: str | int, value: float, station: int = 1) -> Outcome[None]:
        return self.write_value(address, value, DataType.DOUBLE, station)


def _narrow(read: Outcome[bytes], fn: Callable[[bytes], T]) -> Outcome[T]:
    """Decode a read's bytes, turning a short payload into a failed Outcome."""
    try:
        return read.map(fn)
    except (struct.error, ValueError) as e:
        failed: Outcome[T] = Outcome(
            request=read.request,
            response=read.response,
            err_list=list(read.err_list),
            started_at=read.started_at,
        )
        return failed.fail(f"Cannot decode response data: {e}").finish()
