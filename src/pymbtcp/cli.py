#!/usr/bin/env python3
"""Command line interface for pymbtcp using Typer."""

import csv
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .client import ModbusTcpClient
from .errors import FrameError, InvalidAddressError, ModbusIOError, UnsupportedDataTypeError
from .types import AddressSpec, BatchResult, ByteOrder, DataType, Outcome

app = typer.Typer(
    name="mbtcp",
    help="Read and write Modbus/TCP devices: single values, raw registers and coalesced batches.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Device hostname or IP address", envvar="PYMBTCP_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="PYMBTCP_PORT"),
]
StationOption = Annotated[
    int,
    typer.Option("--station", "-s", help="Station number (unit identifier)"),
]
TimeoutOption = Annotated[
    int,
    typer.Option("--timeout", "-t", help="Socket timeout in milliseconds"),
]
ByteOrderOption = Annotated[
    ByteOrder,
    typer.Option("--byte-order", "-b", help="Byte order of multi-register values", case_sensitive=False),
]
TypeOption = Annotated[
    DataType,
    typer.Option("--type", help="Value data type", case_sensitive=False),
]
FunctionCodeOption = Annotated[
    Optional[int],
    typer.Option("--function-code", "-f", help="Function code (default depends on the command and type)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_client(
    host: Optional[str],
    port: int,
    timeout: int,
    byte_order: ByteOrder,
) -> ModbusTcpClient:
    """Create and return a ModbusTcpClient instance."""
    if not host:
        typer.echo("Error: --host is required for this command", err=True)
        raise typer.Exit(2)
    return ModbusTcpClient(host=host, port=port, timeout_ms=timeout, byte_order=byte_order)


def parse_bool(value: str) -> bool:
    """Parse boolean value from string."""
    v = value.lower().strip()
    if v in ("true", "1", "on", "yes"):
        return True
    if v in ("false", "0", "off", "no"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_number(value: str, data_type: DataType) -> bool | int | float:
    """Parse a value for data_type: bool words, decimal/0x hex integers, or floats."""
    if data_type == DataType.BOOL:
        return parse_bool(value)
    v = value.strip()
    if data_type in (DataType.FLOAT, DataType.DOUBLE):
        return float(v)
    if v.lower().startswith(("0x", "-0x")):
        return int(v, 16)
    return int(v)


def parse_spec(raw: str, station: int, function_code: Optional[int]) -> AddressSpec:
    """
    Parse 'ADDRESS:TYPE' (type defaults to int16) into an AddressSpec.

    Bits default to function code 1, everything else to 3.
    """
    address, _, type_name = raw.partition(":")
    data_type = DataType.parse(type_name or "int16")
    fc = function_code if function_code is not None else (1 if data_type == DataType.BOOL else 3)
    return AddressSpec(address=int(_require_numeric(address)), data_type=data_type, station=station, function_code=fc)


def _require_numeric(address: str) -> str:
    if not address.strip().isdigit():
        raise InvalidAddressError(address, f"Address must be numeric, got {address!r}")
    return address.strip()


def load_specs(csv_path: Path, station: int, function_code: Optional[int]) -> list[AddressSpec]:
    """
    Load batch specs from a CSV with columns (address, type[, station[, function_code]]).
    Blank lines and rows starting with '#' are skipped.
    """
    specs: list[AddressSpec] = []
    with open(csv_path, newline="", encoding="utf-8") as f:
        for row in csv.reader(f):
            cells = [(c or "").strip() for c in row]
            if not cells or not cells[0] or cells[0].startswith("#"):
                continue
            row_station = int(cells[2]) if len(cells) > 2 and cells[2] else station
            row_fc = int(cells[3]) if len(cells) > 3 and cells[3] else function_code
            type_name = cells[1] if len(cells) > 1 and cells[1] else "int16"
            specs.append(parse_spec(f"{cells[0]}:{type_name}", row_station, row_fc))
    return specs


def outcome_to_dict(outcome: Outcome[Any]) -> dict[str, Any]:
    """JSON-friendly view of an Outcome (bytes as hex, batch entries as dicts)."""
    value = outcome.value
    if isinstance(value, bytes):
        value = value.hex(" ").upper()
    elif isinstance(value, list):
        value = [batch_entry_to_dict(v) for v in value]
    return {
        "success": outcome.is_success,
        "value": value,
        "errors": list(outcome.err_list),
        "request": outcome.request,
        "response": outcome.response,
    }


def batch_entry_to_dict(entry: BatchResult) -> dict[str, Any]:
    return {
        "address": entry.address,
        "station": entry.station,
        "function_code": entry.function_code,
        "type": entry.data_type.value,
        "value": entry.value,
    }


def format_value(value: bool | int | float) -> str:
    """Format value for display."""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _fail(outcome: Outcome[Any]) -> None:
    typer.echo(f"Error: Modbus error: {'; '.join(outcome.err_list) or outcome.err}", err=True)
    if outcome.request:
        typer.echo(f"  request:  {outcome.request}", err=True)
    if outcome.response:
        typer.echo(f"  response: {outcome.response}", err=True)
    raise typer.Exit(3)


def _unexpected(e: Exception, verbose: bool) -> None:
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def ping(
    host: HostOption = None,
    port: PortOption = 502,
    station: StationOption = 1,
    timeout: TimeoutOption = 1500,
    verbose: VerboseOption = False,
    address: Annotated[int, typer.Option("--address", help="Holding register to read")] = 0,
) -> None:
    """
    Test connectivity by reading one holding register (offset 0 by default).
    """
    setup_logging(verbose)

    try:
        client = create_client(host, port, timeout, ByteOrder.ABCD)
        with client:
            outcome = client.read(address, station=station, function_code=3, count=1)
            if not outcome.is_success:
                _fail(outcome)
            typer.echo(f"OK: Connected to {host}:{port}, register {address} = {outcome.value.hex(' ').upper()}")
    except ModbusIOError as e:
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    except InvalidAddressError as e:
        typer.echo(f"Error: Invalid address: {e}", err=True)
        raise typer.Exit(2)
    except typer.Exit:
        raise
    except Exception as e:
        _unexpected(e, verbose)


@app.command()
def info(
    host: HostOption = None,
    port: PortOption = 502,
    timeout: TimeoutOption = 1500,
    byte_order: ByteOrderOption = ByteOrder.ABCD,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show package version and settings; with --host also test connectivity.
    """
    setup_logging(verbose)

    info_data: dict[str, Any] = {
        "version": __version__,
        "byte_order": byte_order.value,
        "timeout_ms": timeout,
    }

    if host:
        client = create_client(host, port, timeout, byte_order)
        result = client.connect()
        client.close()
        info_data["connectivity"] = {
            "status": "connected" if result.is_success else "failed",
            "host": host,
            "port": port,
        }
        if not result.is_success:
            info_data["connectivity"]["error"] = result.err

    if json_output:
        typer.echo(json.dumps(info_data, indent=2))
    else:
        typer.echo(f"pymbtcp version: {info_data['version']}")
        typer.echo(f"Byte order: {info_data['byte_order']}")
        typer.echo(f"Timeout: {info_data['timeout_ms']} ms")
        if "connectivity" in info_data:
            conn = info_data["connectivity"]
            if conn["status"] == "connected":
                typer.echo(f"Connectivity: OK ({host}:{port})")
            else:
                typer.echo(f"Connectivity: FAILED ({host}:{port}) - {conn.get('error', 'unknown')}")


@app.command()
def read(
    address: Annotated[str, typer.Argument(help="Register or coil address (decimal)")],
    host: HostOption = None,
    port: PortOption = 502,
    station: StationOption = 1,
    timeout: TimeoutOption = 1500,
    byte_order: ByteOrderOption = ByteOrder.ABCD,
    data_type: TypeOption = DataType.INT16,
    function_code: FunctionCodeOption = None,
    raw: Annotated[Optional[int], typer.Option("--raw", help="Read N raw registers and print hex")] = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Read one typed value, or N raw registers with --raw.
    """
    setup_logging(verbose)

    try:
        client = create_client(host, port, timeout, byte_order)
        with client:
            if raw is not None:
                outcome: Outcome[Any] = client.read(
                    address, station, function_code or 3, count=raw, apply_byte_order=False
                )
            else:
                outcome = client.read_value(address, data_type, station, function_code)
            if not outcome.is_success:
                if json_output:
                    typer.echo(json.dumps(outcome_to_dict(outcome)))
                _fail(outcome)

            if json_output:
                typer.echo(json.dumps({"address": address, **outcome_to_dict(outcome)}))
            elif raw is not None:
                typer.echo(outcome.value.hex(" ").upper())
            else:
                typer.echo(format_value(outcome.value))
    except (InvalidAddressError, UnsupportedDataTypeError) as e:
        typer.echo(f"Error: Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    except typer.Exit:
        raise
    except Exception as e:
        _unexpected(e, verbose)


@app.command()
def write(
    address: Annotated[str, typer.Argument(help="Register address (decimal)")],
    value: Annotated[str, typer.Argument(help="Value to write (int: decimal or 0x hex; float; bool: true/false/1/0)")],
    host: HostOption = None,
    port: PortOption = 502,
    station: StationOption = 1,
    timeout: TimeoutOption = 1500,
    byte_order: ByteOrderOption = ByteOrder.ABCD,
    data_type: TypeOption = DataType.INT16,
    function_code: FunctionCodeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Write one typed value (bool values are written as a single coil).
    """
    setup_logging(verbose)

    try:
        parsed = parse_number(value, data_type)
    except ValueError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)

    try:
        client = create_client(host, port, timeout, byte_order)
        with client:
            outcome = client.write_value(address, parsed, data_type, station, function_code)
            if not outcome.is_success:
                _fail(outcome)
            typer.echo(f"OK: Wrote {address} = {value}")
    except (InvalidAddressError, UnsupportedDataTypeError, FrameError, ValueError) as e:
        typer.echo(f"Error: Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    except typer.Exit:
        raise
    except Exception as e:
        _unexpected(e, verbose)


@app.command(name="write-coil")
def write_coil(
    address: Annotated[str, typer.Argument(help="Coil address (decimal)")],
    value: Annotated[str, typer.Argument(help="true/false, 1/0, on/off, yes/no")],
    host: HostOption = None,
    port: PortOption = 502,
    station: StationOption = 1,
    timeout: TimeoutOption = 1500,
    function_code: FunctionCodeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Write a single coil (function code 5 by default).
    """
    setup_logging(verbose)

    try:
        state = parse_bool(value)
    except ValueError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)

    try:
        client = create_client(host, port, timeout, ByteOrder.ABCD)
        with client:
            outcome = client.write_coil(address, state, station, function_code or 5)
            if not outcome.is_success:
                _fail(outcome)
            typer.echo(f"OK: Wrote coil {address} = {str(state).lower()}")
    except InvalidAddressError as e:
        typer.echo(f"Error: Invalid address: {e}", err=True)
        raise typer.Exit(2)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    except typer.Exit:
        raise
    except Exception as e:
        _unexpected(e, verbose)


def _collect_specs(
    specs: Optional[list[str]],
    spec_file: Optional[str],
    station: int,
    function_code: Optional[int],
) -> list[AddressSpec]:
    collected: list[AddressSpec] = []
    if spec_file:
        path = Path(spec_file)
        if not path.is_file():
            typer.echo(f"Error: Spec file not found: {path}", err=True)
            raise typer.Exit(2)
        collected.extend(load_specs(path, station, function_code))
    for raw in specs or []:
        collected.append(parse_spec(raw, station, function_code))
    if not collected:
        typer.echo("Error: At least one ADDRESS:TYPE spec or --file is required", err=True)
        raise typer.Exit(2)
    return collected


SpecsArgument = Annotated[
    Optional[list[str]],
    typer.Argument(help="Values to read as ADDRESS:TYPE (e.g. 0:int16 2:int32 6:float 10:bool)"),
]
SpecFileOption = Annotated[
    Optional[str],
    typer.Option("--file", help="CSV with address,type[,station[,function_code]] rows"),
]


@app.command(name="batch-read")
def batch_read(
    specs: SpecsArgument = None,
    spec_file: SpecFileOption = None,
    host: HostOption = None,
    port: PortOption = 502,
    station: StationOption = 1,
    timeout: TimeoutOption = 1500,
    byte_order: ByteOrderOption = ByteOrder.ABCD,
    function_code: FunctionCodeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Read many values, coalescing neighbouring addresses into few requests.

    Output is JSON. Groups that fail are reported under "errors"; values from
    the other groups are still printed, and the exit code is 3.
    """
    setup_logging(verbose)

    try:
        collected = _collect_specs(specs, spec_file, station, function_code)
        client = create_client(host, port, timeout, byte_order)
        with client:
            outcome = client.batch_read(collected)
        typer.echo(json.dumps(outcome_to_dict(outcome), indent=2))
        if not outcome.is_success:
            raise typer.Exit(3)
    except (InvalidAddressError, UnsupportedDataTypeError, ValueError) as e:
        typer.echo(f"Error: Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    except typer.Exit:
        raise
    except Exception as e:
        _unexpected(e, verbose)


@app.command()
def poll(
    specs: SpecsArgument = None,
    spec_file: SpecFileOption = None,
    host: HostOption = None,
    port: PortOption = 502,
    station: StationOption = 1,
    timeout: TimeoutOption = 1500,
    byte_order: ByteOrderOption = ByteOrder.ABCD,
    function_code: FunctionCodeOption = None,
    verbose: VerboseOption = False,
    interval: Annotated[float, typer.Option("--interval", "-i", help="Polling interval in seconds")] = 1.0,
    once: Annotated[bool, typer.Option("--once", help="Poll once and exit")] = False,
    output_format: Annotated[str, typer.Option("--format", help="Output format: text, json, csv")] = "text",
) -> None:
    """
    Continuously batch-read values at the given interval.

    Outputs format:
    - text: timestamp + address=value pairs (default)
    - json: NDJSON with {"timestamp": "...", "values": {...}} per line
    - csv: addresses as columns, one row per poll cycle

    Press Ctrl+C to stop gracefully.
    """
    setup_logging(verbose)

    if output_format not in ("text", "json", "csv"):
        typer.echo(f"Error: Invalid format '{output_format}'. Must be text, json, or csv.", err=True)
        raise typer.Exit(2)

    if interval <= 0:
        typer.echo(f"Error: Interval must be positive, got {interval}", err=True)
        raise typer.Exit(2)

    try:
        collected = _collect_specs(specs, spec_file, station, function_code)
        names = [f"{s.station}/{s.function_code}/{s.address}:{s.data_type.value}" for s in collected]
        client = create_client(host, port, timeout, byte_order)

        if output_format == "csv":
            typer.echo("timestamp," + ",".join(names))

        with client:
            for outcome in client.poll_iter(collected, interval):
                if not outcome.is_success:
                    _fail(outcome)
                by_key = {
                    (r.station, r.function_code, r.address, r.data_type): format_value(r.value)
                    for r in outcome.value or []
                }
                row = {
                    name: by_key.get((s.station, s.function_code, s.address, s.data_type), "")
                    for name, s in zip(names, collected)
                }
                timestamp = datetime.now(timezone.utc).isoformat()
                if output_format == "text":
                    typer.echo(f"{timestamp} " + " ".join(f"{k}={v}" for k, v in row.items()))
                elif output_format == "json":
                    typer.echo(json.dumps({"timestamp": timestamp, "values": row}))
                else:
                    typer.echo(timestamp + "," + ",".join(row.values()))
                if once:
                    break
    except (InvalidAddressError, UnsupportedDataTypeError, ValueError) as e:
        typer.echo(f"Error: Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except typer.Exit:
        raise
    except Exception as e:
        _unexpected(e, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pymbtcp {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """mbtcp - Modbus/TCP client command line."""
    pass


if __name__ == "__main__":
    app()
