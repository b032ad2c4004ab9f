"""Core data model: byte orders, register data types, endpoint, batch specs and Outcome."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

from .errors import UnsupportedDataTypeError

T = TypeVar("T")
U = TypeVar("U")

# Maximum registers a single read may request.
MAX_REGISTERS_PER_READ = 125


class ByteOrder(str, Enum):
    """Wire layout of multi-register values, named after the big-endian bytes A..D."""

    ABCD = "ABCD"  # most significant word first, most significant byte first
    BADC = "BADC"  # bytes swapped inside each word
    CDAB = "CDAB"  # least significant word first
    DCBA = "DCBA"  # fully little-endian


class DataType(str, Enum):
    """Closed set of value types that can be read from registers or bits."""

    BOOL = "bool"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"

    @property
    def registers(self) -> int:
        """Number of 16-bit registers (or bits, for BOOL) one value occupies."""
        return _REGISTERS[self]

    @property
    def struct_format(self) -> str:
        return _STRUCT_FORMATS[self]

    @classmethod
    def parse(cls, raw: "str | DataType") -> "DataType":
        """Return the DataType for a name such as 'int32'; raise UnsupportedDataTypeError otherwise."""
        if isinstance(raw, DataType):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise UnsupportedDataTypeError(raw) from None


_REGISTERS: dict[DataType, int] = {
    DataType.BOOL: 1,
    DataType.INT16: 1,
    DataType.UINT16: 1,
    DataType.INT32: 2,
    DataType.UINT32: 2,
    DataType.INT64: 4,
    DataType.UINT64: 4,
    DataType.FLOAT: 2,
    DataType.DOUBLE: 4,
}

_STRUCT_FORMATS: dict[DataType, str] = {
    DataType.BOOL: ">?",
    DataType.INT16: ">h",
    DataType.UINT16: ">H",
    DataType.INT32: ">i",
    DataType.UINT32: ">I",
    DataType.INT64: ">q",
    DataType.UINT64: ">Q",
    DataType.FLOAT: ">f",
    DataType.DOUBLE: ">d",
}


@dataclass(frozen=True)
class Endpoint:
    """Target controller: host, port, socket timeout (ms) and byte order."""

    host: str
    port: int = 502
    timeout_ms: int = 1500
    byte_order: ByteOrder = ByteOrder.ABCD

    def __post_init__(self) -> None:
        if not 0 < self.port <= 65535:
            raise ValueError(f"port must be in 1..65535, got {self.port}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class AddressSpec:
    """One value requested by batch_read."""

    address: int
    data_type: DataType
    station: int = 1
    function_code: int = 3


@dataclass(frozen=True)
class BatchResult:
    """One decoded value returned by batch_read."""

    address: int
    station: int
    function_code: int
    data_type: DataType
    value: bool | int | float


@dataclass
class Outcome(Generic[T]):
    """
    Result of every public operation: success flag, error messages, raw request
    and response hex, and the decoded value on success.
    """

    is_success: bool = True
    err: str | None = None
    err_list: list[str] = field(default_factory=list)
    request: str = ""
    response: str = ""
    value: T | None = None
    started_at: float = field(default_factory=time.monotonic, repr=False)
    elapsed_ms: float | None = None

    def fail(self, message: str) -> "Outcome[T]":
        self.is_success = False
        self.err = message
        self.err_list.append(message)
        return self

    def merge_errors(self, other: "Outcome[Any]") -> "Outcome[T]":
        """Copy the failure state of another outcome into this one."""
        if not other.is_success:
            self.is_success = False
            self.err = other.err
            self.err_list.extend(other.err_list)
        return self

    def finish(self) -> "Outcome[T]":
        self.elapsed_ms = (time.monotonic() - self.started_at) * 1000.0
        return self

    def map(self, fn: Callable[[T], U]) -> "Outcome[U]":
        """Return an Outcome with the same diagnostics and fn(value) when successful."""
        mapped: Outcome[U] = Outcome(
            is_success=self.is_success,
            err=self.err,
            err_list=list(self.err_list),
            request=self.request,
            response=self.response,
            started_at=self.started_at,
            elapsed_ms=self.elapsed_ms,
        )
        if self.is_success and self.value is not None:
            mapped.value = fn(self.value)
        return mapped
