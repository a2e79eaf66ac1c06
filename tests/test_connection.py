# tests/test_connection.py

import asyncio
from dataclasses import replace

import pytest

from huawei_modbus import modbus_client
from huawei_modbus.exceptions import TransportError
from huawei_modbus.modbus_client import ConnectionState, HuaweiModbusConnection, ReadResult


def test_client_built_without_library_retries(gateway, modbus_config):
    async def run():
        conn = HuaweiModbusConnection(modbus_config)
        assert await conn.connect()
        return conn

    conn = asyncio.run(run())
    client = gateway.clients[0]
    assert client.host == "192.0.2.10"
    assert client.kwargs["retries"] == 0
    assert conn.state == ConnectionState.CONNECTED


def test_unit_id_override_restored_after_success(gateway, modbus_config):
    gateway.set_u16(12, 32085, 5002)

    async def run():
        conn = HuaweiModbusConnection(modbus_config)
        result = await conn.read_u16(32085, unit_id=12)
        return conn, result

    conn, result = asyncio.run(run())
    assert result.success and result.value == 5002
    assert gateway.requests[-1] == (12, 32085, 1)
    assert conn.active_unit_id == 0


def test_unit_id_override_restored_after_failure(gateway, modbus_config):
    async def run():
        conn = HuaweiModbusConnection(modbus_config)
        result = await conn.read_registers(32085, 1, unit_id=99)
        return conn, result

    conn, result = asyncio.run(run())
    assert not result.success
    assert "error response" in result.error
    assert conn.active_unit_id == 0


def test_unit_id_override_restored_when_read_raises(gateway, modbus_config):
    gateway.raise_on[(12, 100)] = RuntimeError("boom")
    conn = HuaweiModbusConnection(modbus_config)

    with pytest.raises(RuntimeError):
        asyncio.run(conn.read_registers(100, 1, unit_id=12))
    assert conn.active_unit_id == 0


def test_transport_errors_are_retried(gateway, modbus_config):
    gateway.set_u16(0, 100, 7)
    gateway.transport_failures = 2

    conn = HuaweiModbusConnection(modbus_config)
    result = asyncio.run(conn.read_u16(100))

    assert result == ReadResult.ok(7)
    assert len(gateway.requests) == 3


def test_transport_errors_exhaust_retries(gateway, modbus_config):
    gateway.set_u16(0, 100, 7)
    gateway.transport_failures = 10

    conn = HuaweiModbusConnection(modbus_config)
    result = asyncio.run(conn.read_u16(100))

    assert not result.success
    assert result.error.startswith("Failed after 3 attempts")
    assert len(gateway.requests) == 3
    assert conn.failed_reads == 1


def test_retry_backoff_doubles_each_attempt(gateway, modbus_config, monkeypatch):
    sleeps = []

    async def record_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr(modbus_client.asyncio, "sleep", record_sleep)
    gateway.set_u16(0, 100, 7)
    gateway.transport_failures = 2

    conn = HuaweiModbusConnection(replace(modbus_config, retry_delay=0.1))
    result = asyncio.run(conn.read_u16(100))

    assert result == ReadResult.ok(7)
    assert [d for d in sleeps if d] == pytest.approx([0.1, 0.2])


def test_no_sleep_after_last_attempt(gateway, modbus_config, monkeypatch):
    sleeps = []

    async def record_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr(modbus_client.asyncio, "sleep", record_sleep)
    gateway.transport_failures = 10

    conn = HuaweiModbusConnection(replace(modbus_config, retry_delay=0.5))
    result = asyncio.run(conn.read_u16(100))

    assert not result.success
    assert [d for d in sleeps if d] == pytest.approx([0.5, 1.0])


def test_exception_response_is_not_retried(gateway, modbus_config):
    conn = HuaweiModbusConnection(modbus_config)
    result = asyncio.run(conn.read_registers(100, 2, unit_id=5))

    assert not result.success
    assert len(gateway.requests) == 1


def test_connect_failure_is_a_failed_result(gateway, modbus_config):
    gateway.fail_connect = True
    conn = HuaweiModbusConnection(modbus_config)
    result = asyncio.run(conn.read_u16(100))

    assert not result.success
    assert "Failed to connect" in result.error
    assert gateway.requests == []


def test_context_manager_raises_when_unreachable(gateway, modbus_config):
    gateway.fail_connect = True

    async def run():
        async with HuaweiModbusConnection(modbus_config):
            pass

    with pytest.raises(TransportError):
        asyncio.run(run())


def test_concurrent_overrides_are_serialised(gateway, modbus_config):
    gateway.delay = 0.01
    for unit_id in (12, 13, 14, 15):
        gateway.set_u16(unit_id, 30071, unit_id * 10)

    async def run():
        conn = HuaweiModbusConnection(modbus_config)
        results = await asyncio.gather(*(conn.read_u16(30071, unit_id=u) for u in (12, 13, 14, 15)))
        return conn, results

    conn, results = asyncio.run(run())
    assert [r.value for r in results] == [120, 130, 140, 150]
    assert conn.active_unit_id == 0


def test_typed_reads(gateway, modbus_config):
    gateway.set_u32(12, 32080, -1000)
    gateway.set_string(12, 30000, "SUN2000-100KTL-M1", 15)
    gateway.set_words(12, 40000, [0xFF38, 0, 0, 0x0001, 0x0002])

    async def run():
        conn = HuaweiModbusConnection(modbus_config)
        return (
            await conn.read_i32(32080, unit_id=12),
            await conn.read_u32(32080, unit_id=12),
            await conn.read_string(30000, 15, unit_id=12),
            await conn.read_i16(40000, unit_id=12),
            await conn.read_u64(40001, unit_id=12),
            conn.get_stats(),
        )

    signed, unsigned, model, small, big, stats = asyncio.run(run())
    assert signed.value == -1000
    assert unsigned.value == 0xFFFFFC18
    assert model.value == "SUN2000-100KTL-M1"
    assert small.value == -200
    assert big.value == (1 << 16) + 2
    assert stats["successful_reads"] == 5


def test_disconnect_is_idempotent(gateway, modbus_config):
    async def run():
        conn = HuaweiModbusConnection(modbus_config)
        await conn.connect()
        await conn.disconnect()
        await conn.disconnect()
        return conn

    conn = asyncio.run(run())
    assert conn.state == ConnectionState.DISCONNECTED
    assert gateway.clients[0].closed
