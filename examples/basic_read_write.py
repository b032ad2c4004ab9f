#!/usr/bin/env python3
"""Example: connect to a Modbus/TCP device, read and write a few typed values."""

import sys

from pymbtcp import AddressSpec, ByteOrder, DataType, ModbusTcpClient
from pymbtcp.errors import InvalidAddressError, ModbusIOError


def main() -> None:
    host = "192.168.1.10"  # change to your device IP
    port = 502
    station = 1

    try:
        with ModbusTcpClient(host=host, port=port, byte_order=ByteOrder.CDAB) as dev:
            # Single holding register
            r = dev.read_int16(0, station)
            print(f"HR0 = {r.value}" if r.is_success else f"HR0 failed: {r.err}")

            # 32-bit float spanning registers 6..7, word-swapped
            r = dev.read_float(6, station)
            print(f"HR6 (float) = {r.value}" if r.is_success else f"HR6 failed: {r.err}")
            print(f"  request:  {r.request}")
            print(f"  response: {r.response}")

            # Write (example; uncomment if your device allows)
            # dev.write_float(6, 21.5, station)
            # dev.write_coil(0, True, station)

            # Batch read: neighbouring addresses go out as a single request
            batch = dev.batch_read(
                [
                    AddressSpec(0, DataType.INT16, station),
                    AddressSpec(2, DataType.INT32, station),
                    AddressSpec(6, DataType.FLOAT, station),
                    AddressSpec(0, DataType.BOOL, station, function_code=1),
                ]
            )
            for entry in batch.value or []:
                print(f"{entry.function_code}/{entry.address}:{entry.data_type.value} = {entry.value}")
            if not batch.is_success:
                print(f"batch errors: {batch.err_list}", file=sys.stderr)
    except InvalidAddressError as e:
        print(f"Invalid address: {e}", file=sys.stderr)
        sys.exit(1)
    except ModbusIOError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
