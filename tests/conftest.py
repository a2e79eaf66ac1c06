# tests/conftest.py

import pytest

from huawei_modbus import modbus_client
from huawei_modbus.config import ModbusConfig

from .fake_gateway import FakeGateway


@pytest.fixture
def gateway(monkeypatch):
    gw = FakeGateway()
    monkeypatch.setattr(modbus_client, "AsyncModbusTcpClient", gw.client_factory)
    return gw


@pytest.fixture
def modbus_config():
    return ModbusConfig(host="192.0.2.10", port=502, unit_id=0, timeout=1.0, retries=2, retry_delay=0)
