# tests/fake_gateway.py

import asyncio

from pymodbus.exceptions import ModbusException


class FakeResponse:
    def __init__(self, registers=None, error=False):
        self.registers = registers or []
        self._error = error

    def isError(self):
        return self._error

    def __repr__(self):
        return "ExceptionResponse(0x02)" if self._error else f"Response({self.registers})"


class FakeGateway:
    """
    In-memory SmartLogger: per-unit register maps shared by every client
    created through client_factory.
    """

    def __init__(self):
        self.units = {}
        self.clients = []
        self.requests = []
        self.fail_connect = False
        self.transport_failures = 0
        self.raise_on = {}
        self.delay = 0

    # --- register setup -------------------------------------------------

    def set_words(self, unit_id, address, words):
        regs = self.units.setdefault(unit_id, {})
        for i, word in enumerate(words):
            regs[address + i] = word & 0xFFFF

    def set_u16(self, unit_id, address, value):
        self.set_words(unit_id, address, [value])

    def set_u32(self, unit_id, address, value):
        value &= 0xFFFFFFFF
        self.set_words(unit_id, address, [value >> 16, value & 0xFFFF])

    def set_string(self, unit_id, address, text, count):
        data = text.encode("latin-1").ljust(count * 2, b"\x00")[:count * 2]
        self.set_words(unit_id, address, [(data[i] << 8) | data[i + 1] for i in range(0, len(data), 2)])

    # --- pymodbus stand-in ----------------------------------------------

    def client_factory(self, host, **kwargs):
        client = FakeModbusClient(self, host, **kwargs)
        self.clients.append(client)
        return client


class FakeModbusClient:
    def __init__(self, gateway, host, port=502, **kwargs):
        self.gateway = gateway
        self.host = host
        self.port = port
        self.kwargs = kwargs
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = not self.gateway.fail_connect
        return self.connected

    def close(self):
        self.connected = False
        self.closed = True

    async def read_holding_registers(self, address, count=1, device_id=1):
        gw = self.gateway
        gw.requests.append((device_id, address, count))
        await asyncio.sleep(gw.delay)

        if gw.transport_failures > 0:
            gw.transport_failures -= 1
            raise ModbusException("No response received")

        error = gw.raise_on.get((device_id, address))
        if error is not None:
            raise error

        regs = gw.units.get(device_id)
        if regs is None:
            return FakeResponse(error=True)

        words = [regs.get(a) for a in range(address, address + count)]
        if any(w is None for w in words):
            return FakeResponse(error=True)
        return FakeResponse(words)
