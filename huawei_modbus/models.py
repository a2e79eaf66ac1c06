"""Device records produced by discovery and the data readers"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

# Every key an inverter record may carry. Absent key = not requested or not readable.
INVERTER_FIELDS = frozenset([
    # Identity
    'model', 'serial_number', 'firmware_version', 'software_version',
    'string_count', 'mppt_count', 'rated_power',
    # Power and energy
    'active_power', 'reactive_power', 'input_power', 'peak_active_power',
    'power_factor', 'efficiency', 'total_energy', 'daily_energy', 'dc_current',
    # Grid
    'line_voltage_ab', 'line_voltage_bc', 'line_voltage_ca',
    'phase_a_voltage', 'phase_b_voltage', 'phase_c_voltage',
    'phase_a_current', 'phase_b_current', 'phase_c_current',
    'grid_frequency',
    # PV strings
    'pv_strings',
    # Status
    'status', 'running_status', 'running_status_text', 'device_status',
    'device_status_text', 'internal_temperature', 'cabinet_temperature',
    'insulation_resistance',
    # Alarms and faults
    'alarm_1', 'alarm_2', 'alarm_3', 'alarm_texts', 'fault_code',
    'major_fault', 'minor_fault', 'warning',
])


@dataclass
class DeviceInfo:
    """A device found behind the gateway"""
    unit_id: int
    device_name: str
    device_address: Optional[int] = None
    port_number: Optional[int] = None
    connection_status: Optional[str] = None
    device_type: str = "other"

    def to_dict(self) -> Dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


class InverterRecord:
    """
    Canonical per-device output record.

    Holds only fields that were read successfully; None is never stored, so
    a missing key always means "not available" rather than a zero reading.
    """

    def __init__(self, unit_id: int, device_name: Optional[str] = None):
        self.unit_id = unit_id
        self.device_name = device_name
        self.error: Optional[str] = None
        self._fields: Dict[str, Any] = {}

    @classmethod
    def failed(cls, unit_id: int, device_name: Optional[str], error: str) -> 'InverterRecord':
        record = cls(unit_id, device_name)
        record.error = error
        return record

    def set(self, key: str, value: Any):
        if key not in INVERTER_FIELDS:
            raise KeyError(f"Unknown inverter field: {key}")
        if value is not None:
            self._fields[key] = value

    def update(self, fields: Dict[str, Any]):
        for key, value in fields.items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        return self._fields.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict:
        data = {'unit_id': self.unit_id}
        if self.device_name:
            data['device_name'] = self.device_name
        data.update(self._fields)
        if self.error is not None:
            data['error'] = self.error
        return data

    def __repr__(self):
        state = f"error={self.error!r}" if self.error else f"{len(self._fields)} fields"
        return f"InverterRecord(unit_id={self.unit_id}, {state})"
