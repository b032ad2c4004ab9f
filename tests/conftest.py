"""Fake Modbus/TCP device behind a fake socket, patched into the transport."""

import struct

import pytest

from pymbtcp import transport as transport_module
from pymbtcp.values import pack_bits


class FakeDevice:
    """
    In-memory register/coil store answering frames the way a Modbus/TCP
    server would, echoing the request's first two bytes.

    Failure knobs:
        refuse: connection attempts raise ConnectionRefusedError
        fail_sends: number of upcoming sendall() calls that raise BrokenPipeError
        drop_responses: number of upcoming requests that get no reply (recv times out)
        corrupt_check_head: reply with a different check head
        exception_code: reply with a Modbus exception instead of data
        truncate_responses: number of upcoming replies cut after 9 bytes, followed by FIN
        short_length_field: reply with a length field of 1
    """

    def __init__(self) -> None:
        self.registers: dict[int, int] = {}
        self.coils: dict[int, bool] = {}
        self.requests: list[bytes] = []
        self.sockets: list["FakeSocket"] = []
        self.connections = 0
        self.send_attempts = 0
        self.refuse = False
        self.fail_sends = 0
        self.drop_responses = 0
        self.corrupt_check_head = False
        self.exception_code: int | None = None
        self.truncate_responses = 0
        self.short_length_field = False

    def handle(self, command: bytes) -> bytes:
        head = command[:2]
        station = command[6]
        fc = command[7]
        if self.corrupt_check_head:
            head = bytes([head[0] ^ 0xFF, head[1]])
        if self.exception_code is not None:
            pdu = bytes([fc | 0x80, self.exception_code])
        elif fc in (3, 4):
            addr, count = struct.unpack(">HH", command[8:12])
            data = b"".join(struct.pack(">H", self.registers.get(addr + i, 0)) for i in range(count))
            pdu = bytes([fc, len(data)]) + data
        elif fc in (1, 2):
            addr, count = struct.unpack(">HH", command[8:12])
            data = pack_bits([self.coils.get(addr + i, False) for i in range(count)])
            pdu = bytes([fc, len(data)]) + data
        elif fc == 5:
            addr, value = struct.unpack(">HH", command[8:12])
            self.coils[addr] = value == 0xFF00
            pdu = command[7:12]
        elif fc == 16:
            addr, qty, nbytes = struct.unpack(">HHB", command[8:13])
            data = command[13 : 13 + nbytes]
            for i in range(qty):
                self.registers[addr + i] = struct.unpack(">H", data[2 * i : 2 * i + 2])[0]
            pdu = command[7:12]
        else:
            pdu = bytes([fc | 0x80, 0x01])
        length = 1 if self.short_length_field else len(pdu) + 1
        return head + struct.pack(">HH", 0, length) + bytes([station]) + pdu

    def set_registers(self, address: int, data: bytes) -> None:
        for i in range(0, len(data), 2):
            self.registers[address + i // 2] = struct.unpack(">H", data[i : i + 2])[0]


class FakeSocket:
    def __init__(self, device: FakeDevice) -> None:
        self.device = device
        self.rx = bytearray()
        self.closed = False
        self.timeout: float | None = None
        self.eof = False

    def settimeout(self, timeout: float) -> None:
        self.timeout = timeout

    def sendall(self, data: bytes) -> None:
        self.device.send_attempts += 1
        if self.closed:
            raise OSError("socket is closed")
        if self.device.fail_sends:
            self.device.fail_sends -= 1
            raise BrokenPipeError("broken pipe")
        self.device.requests.append(bytes(data))
        if self.device.drop_responses:
            self.device.drop_responses -= 1
            return
        reply = self.device.handle(bytes(data))
        if self.device.truncate_responses:
            self.device.truncate_responses -= 1
            reply = reply[:9]
            self.eof = True
        self.rx.extend(reply)

    def recv(self, n: int) -> bytes:
        if not self.rx:
            if self.eof:
                return b""
            raise TimeoutError("timed out")
        chunk = bytes(self.rx[:n])
        del self.rx[:n]
        return chunk

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def device(monkeypatch: pytest.MonkeyPatch) -> FakeDevice:
    dev = FakeDevice()

    def fake_create_connection(address: tuple[str, int], timeout: float | None = None) -> FakeSocket:
        if dev.refuse:
            raise ConnectionRefusedError(111, "Connection refused")
        dev.connections += 1
        sock = FakeSocket(dev)
        dev.sockets.append(sock)
        return sock

    monkeypatch.setattr(transport_module.socket, "create_connection", fake_create_connection)
    return dev
