# tests/fake_reader.py

import asyncio

from huawei_modbus.models import InverterRecord


class MockInverterReader:
    """Stands in for SUN2000Reader; devices listed in `failing` raise."""

    def __init__(self, values, failing=()):
        self.values = values
        self.failing = set(failing)
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def read_inverter(self, device_address, categories, device_name=None, unit_id=None):
        self.calls.append((device_address, tuple(categories), unit_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if device_address in self.failing:
                raise ConnectionResetError(f"device {device_address} dropped the connection")
            record = InverterRecord(unit_id if unit_id is not None else device_address, device_name)
            record.update(self.values.get(device_address, {}))
            return record
        finally:
            self.active -= 1

    async def read_remapped_inverter(self, device_address, device_name=None, unit_id=None):
        self.calls.append((device_address, None, unit_id))
        await asyncio.sleep(0)
        if device_address in self.failing:
            raise ConnectionResetError(f"device {device_address} dropped the connection")
        record = InverterRecord(unit_id if unit_id is not None else device_address, device_name)
        record.update(self.values.get(device_address, {}))
        return record
