"""pymbtcp: Modbus/TCP client with check-head validation and coalesced batch reads."""

__version__ = "0.1.0"

from .client import ModbusTcpClient
from .errors import FrameError, InvalidAddressError, ModbusIOError, PyMBTCPError, UnsupportedDataTypeError
from .normalize import normalize_address
from .types import AddressSpec, BatchResult, ByteOrder, DataType, Endpoint, Outcome

__all__ = [
    "__version__",
    "ModbusTcpClient",
    "FrameError",
    "InvalidAddressError",
    "ModbusIOError",
    "PyMBTCPError",
    "UnsupportedDataTypeError",
    "normalize_address",
    "AddressSpec",
    "BatchResult",
    "ByteOrder",
    "DataType",
    "Endpoint",
    "Outcome",
]
