# tests/test_app.py

import asyncio

import huawei_modbus_reader
from huawei_modbus.config import ConfigLoader

from .test_discovery import seed_device
from .test_smartlogger import seed_smartlogger
from .test_sun2000 import seed_inverter


def make_app(**reader):
    data = {
        'modbus': {'host': '192.0.2.10', 'retries': 0, 'retry_delay': 0},
        'discovery': {'address_range': '1-15', 'inverter_range': '12-15', 'concurrency': 5},
        'reader': dict({'inter_device_delay': 0}, **reader),
    }
    return huawei_modbus_reader.HuaweiModbusReaderApp(ConfigLoader(data=data))


def parse(*argv):
    return huawei_modbus_reader.build_parser().parse_args(list(argv))


def test_smartlogger_power(gateway):
    seed_smartlogger(gateway)

    output = asyncio.run(make_app().run(parse('smartlogger', 'power')))

    meta = output['_metadata']
    assert meta['operation'] == 'smartlogger'
    assert meta['success'] is True
    assert meta['host'] == '192.0.2.10'
    assert output['data']['plant_status'] == "Unlimited"


def test_inverters_by_address(gateway):
    seed_inverter(gateway, 12)

    output = asyncio.run(make_app().run(parse('inverters', '--addresses', '12-13', '--categories', 'power')))

    inverters = output['inverters']
    assert [i['unit_id'] for i in inverters] == [12, 13]
    assert inverters[0]['active_power'] == 4.9
    assert 'error' not in inverters[0]
    assert 'error' in inverters[1]
    assert output['_metadata']['failed_count'] == 1


def test_inverters_remap_only(gateway):
    seed_inverter(gateway, 12)

    output = asyncio.run(make_app().run(parse('inverters', '--addresses', '12', '--remap-only')))

    inverter = output['inverters'][0]
    assert inverter['active_power'] == 5.0
    assert inverter['status'] == 0x0200
    assert 'model' not in inverter
    assert {unit for unit, _, _ in gateway.requests} == {0}
    assert output['_metadata']['remap_only'] is True
    assert output['_metadata']['categories'] == []


def test_inverters_from_discovery(gateway):
    seed_device(gateway, 3, "SmartLogger3000")
    seed_device(gateway, 12, "SUN2000-100KTL-M1")
    seed_inverter(gateway, 12)

    output = asyncio.run(make_app().run(parse('inverters', '--from-discovery')))

    assert [i['unit_id'] for i in output['inverters']] == [12]
    assert output['inverters'][0]['device_name'] == "SUN2000-100KTL-M1"
    assert output['_metadata']['source'] == 'discovery'


def test_discover(gateway):
    seed_device(gateway, 3, "SmartLogger3000")
    seed_device(gateway, 13, "SUN2000-60KTL")

    output = asyncio.run(make_app().run(parse('discover')))

    assert [d['unit_id'] for d in output['devices']] == [3, 13]
    assert [d['unit_id'] for d in output['inverters']] == [13]


def test_connection_failure_reported(gateway):
    gateway.fail_connect = True

    output = asyncio.run(make_app().run(parse('smartlogger')))

    assert output['_metadata']['success'] is False
    assert "Failed to connect" in output['_metadata']['error']
