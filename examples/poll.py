#!/usr/bin/env python3
"""Example: poll a list of values on an interval using poll_iter; graceful shutdown on Ctrl+C."""

import sys

from pymbtcp import AddressSpec, DataType, ModbusTcpClient
from pymbtcp.errors import InvalidAddressError, ModbusIOError


def main() -> None:
    host = "192.168.1.10"  # change to your device IP
    port = 502
    specs = [
        AddressSpec(0, DataType.UINT16),
        AddressSpec(2, DataType.INT32),
        AddressSpec(10, DataType.BOOL, function_code=1),
    ]
    interval_s = 1.0

    try:
        with ModbusTcpClient(host=host, port=port) as dev:
            print(f"Polling {len(specs)} values every {interval_s}s (Ctrl+C to stop)...")
            for snapshot in dev.poll_iter(specs, interval_s):
                values = {f"{r.address}:{r.data_type.value}": r.value for r in snapshot.value or []}
                if snapshot.is_success:
                    print(values)
                else:
                    print(f"{values} errors={snapshot.err_list}")
    except KeyboardInterrupt:
        print("\nStopped.")
    except InvalidAddressError as e:
        print(f"Invalid address: {e}", file=sys.stderr)
        sys.exit(1)
    except ModbusIOError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
