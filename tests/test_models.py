# tests/test_models.py

import pytest

from huawei_modbus.models import DeviceInfo, InverterRecord


def test_record_only_stores_known_present_fields():
    record = InverterRecord(12, "INV-12")
    record.set('active_power', 4.9)
    record.set('daily_energy', None)
    record.set('status', 0)

    assert 'active_power' in record
    assert 'daily_energy' not in record
    assert record.get('status') == 0
    assert len(record) == 2

    with pytest.raises(KeyError):
        record.set('activePower', 1.0)


def test_record_to_dict():
    record = InverterRecord(12)
    record.update({'active_power': 4.9})
    assert record.to_dict() == {'unit_id': 12, 'active_power': 4.9}
    assert record.ok


def test_failed_record():
    record = InverterRecord.failed(13, "INV-13", "timeout")
    assert record.to_dict() == {'unit_id': 13, 'device_name': "INV-13", 'error': "timeout"}
    assert not record.ok


def test_device_info_to_dict():
    info = DeviceInfo(unit_id=12, device_name="SUN2000", port_number=1, device_type="inverter")
    assert info.to_dict() == {'unit_id': 12, 'device_name': "SUN2000", 'port_number': 1, 'device_type': "inverter"}
