"""Batch coalescer: merge many per-address reads into the fewest register-range reads."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from . import values
from .normalize import normalize_address, validate_function_code, validate_station
from .types import MAX_REGISTERS_PER_READ, AddressSpec, BatchResult, ByteOrder, DataType, Outcome

logger = logging.getLogger(__name__)

# Addresses within this distance of the window start share one read. The
# widest value (4 registers) at the window edge keeps the read within 125.
WINDOW = MAX_REGISTERS_PER_READ - 4

ReadFn = Callable[[int, int, int, int], Outcome[bytes]]


@dataclass(frozen=True)
class ReadPlan:
    """One register-range read and the specs it serves."""

    station: int
    function_code: int
    begin: int
    count: int
    specs: tuple[AddressSpec, ...]


def _normalize(spec: AddressSpec) -> AddressSpec:
    return AddressSpec(
        address=normalize_address(spec.address),
        data_type=DataType.parse(spec.data_type),
        station=validate_station(spec.station),
        function_code=validate_function_code(spec.function_code),
    )


def partition(specs: Iterable[AddressSpec]) -> dict[tuple[int, int], list[AddressSpec]]:
    """
    Group specs by (function_code, station) in first-seen order.

    Identical specs collapse; the same address with different data types is kept
    once per type.
    """
    groups: dict[tuple[int, int], list[AddressSpec]] = {}
    seen: set[AddressSpec] = set()
    for raw in specs:
        spec = _normalize(raw)
        if spec in seen:
            continue
        seen.add(spec)
        groups.setdefault((spec.function_code, spec.station), []).append(spec)
    return groups


def plan_reads(specs: Iterable[AddressSpec]) -> list[ReadPlan]:
    """
    Plan the reads for specs sharing one (function_code, station).

    Each window starts at the lowest unserved address and takes every address
    up to WINDOW registers above it; the read is extended to cover the full
    width of every value in the window.
    """
    pending = sorted({_normalize(s) for s in specs}, key=lambda s: (s.address, s.data_type.registers))
    if not pending:
        return []
    keys = {(s.function_code, s.station) for s in pending}
    if len(keys) != 1:
        raise ValueError(f"plan_reads needs one (function_code, station) group, got {sorted(keys)}")

    plans: list[ReadPlan] = []
    i = 0
    while i < len(pending):
        begin = pending[i].address
        j = i
        while j < len(pending) and pending[j].address <= begin + WINDOW:
            j += 1
        window = tuple(pending[i:j])
        end = max(s.address + s.data_type.registers for s in window)
        plans.append(
            ReadPlan(
                station=window[0].station,
                function_code=window[0].function_code,
                begin=begin,
                count=end - begin,
                specs=window,
            )
        )
        i = j
    return plans


class BatchReader:
    """Runs read plans through a raw read function and decodes every requested value."""

    def __init__(self, read_fn: ReadFn, byte_order: ByteOrder = ByteOrder.ABCD) -> None:
        self._read_fn = read_fn
        self._byte_order = byte_order

    def read(self, specs: Iterable[AddressSpec]) -> Outcome[list[BatchResult]]:
        """
        Read all specs. A failed partition contributes its errors and no values;
        values from the other partitions are still returned.
        """
        result: Outcome[list[BatchResult]] = Outcome(value=[])
        for (function_code, station), group in partition(specs).items():
            sub = self._read_partition(group)
            if sub.is_success:
                result.value.extend(sub.value or [])
            else:
                logger.warning(
                    "Batch read for station %d function %d failed: %s", station, function_code, sub.err
                )
                result.merge_errors(sub)
        return result.finish()

    def _read_partition(self, specs: list[AddressSpec]) -> Outcome[list[BatchResult]]:
        result: Outcome[list[BatchResult]] = Outcome(value=[])
        for plan in plan_reads(specs):
            logger.debug(
                "Batch read station=%d fc=%d begin=%d count=%d (%d values)",
                plan.station,
                plan.function_code,
                plan.begin,
                plan.count,
                len(plan.specs),
            )
            read = self._read_fn(plan.begin, plan.station, plan.function_code, plan.count)
            result.request, result.response = read.request, read.response
            if not read.is_success:
                result.merge_errors(read)
                result.value = []
                return result
            data = read.value or b""
            for spec in plan.specs:
                try:
                    value = values.extract(spec.data_type, plan.begin, spec.address, data, self._byte_order)
                except ValueError as e:
                    result.fail(f"Short response for address {spec.address}: {e}")
                    result.value = []
                    return result
                result.value.append(
                    BatchResult(
                        address=spec.address,
                        station=spec.station,
                        function_code=spec.function_code,
                        data_type=spec.data_type,
                        value=value,
                    )
                )
        return result
