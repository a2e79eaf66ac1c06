"""Alarm and status decoding for SUN2000 inverters

The three alarm registers (32008-32010) are bitfields: every set bit is one
active alarm. Decoding is pure and does no I/O.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from .registers import DEVICE_STATUS, RUNNING_STATUS_BITS


class AlarmSeverity(Enum):
    MAJOR = "Major"
    MINOR = "Minor"
    WARNING = "Warning"


@dataclass(frozen=True)
class AlarmDefinition:
    bit: int
    description: str
    severity: AlarmSeverity

    def text(self) -> str:
        return f"{self.description} ({self.severity.value})"


def _table(entries) -> Tuple[AlarmDefinition, ...]:
    return tuple(
        AlarmDefinition(bit, description, severity)
        for bit, (description, severity) in enumerate(entries)
    )


_MAJOR = AlarmSeverity.MAJOR
_MINOR = AlarmSeverity.MINOR
_WARNING = AlarmSeverity.WARNING

# Alarm register 1 (32008)
ALARM_1 = _table([
    ("High String Input Voltage", _MAJOR),
    ("DC Arc Fault", _MAJOR),
    ("String Reverse Connection", _MAJOR),
    ("String Current Backfeed", _WARNING),
    ("Abnormal String Power", _WARNING),
    ("AFCI Self-Check Fail", _MAJOR),
    ("Phase Wire Short-Circuited to PE", _MAJOR),
    ("Grid Loss", _MAJOR),
    ("Grid Undervoltage", _MAJOR),
    ("Grid Overvoltage", _MAJOR),
    ("Grid Volt. Imbalance", _MAJOR),
    ("Grid Overfrequency", _MAJOR),
    ("Grid Underfrequency", _MAJOR),
    ("Unstable Grid Frequency", _MAJOR),
    ("Output Overcurrent", _MAJOR),
    ("Output DC Component Overhigh", _MAJOR),
])

# Alarm register 2 (32009)
ALARM_2 = _table([
    ("Abnormal Residual Current", _MAJOR),
    ("Abnormal Grounding", _MAJOR),
    ("Low Insulation Resistance", _MAJOR),
    ("Overtemperature", _MINOR),
    ("Device Fault", _MAJOR),
    ("Upgrade Failed or Version Mismatch", _MINOR),
    ("License Expired", _WARNING),
    ("Faulty Monitoring Unit", _MINOR),
    ("Faulty Power Collector", _MAJOR),
    ("Battery Abnormal", _MINOR),
    ("Active Islanding", _MAJOR),
    ("Passive Islanding", _MAJOR),
    ("Transient AC Overvoltage", _MAJOR),
    ("Peripheral Port Short Circuit", _WARNING),
    ("Churn Output Overload", _MAJOR),
    ("Abnormal PV Module Configuration", _MAJOR),
])

# Alarm register 3 (32010)
ALARM_3 = _table([
    ("Optimizer Fault", _WARNING),
    ("Built-in PID Operation Abnormal", _MINOR),
    ("High Input String Voltage to Ground", _MAJOR),
    ("External Fan Abnormal", _MAJOR),
    ("Battery Reverse Connection", _MAJOR),
    ("On-grid/Off-grid Controller Abnormal", _MAJOR),
    ("PV String Loss", _WARNING),
    ("Internal Fan Abnormal", _MAJOR),
    ("DC Protection Unit Abnormal", _MAJOR),
    ("EL Unit Abnormal", _MINOR),
    ("Active Adjustment Instruction Abnormal", _MAJOR),
    ("Reactive Adjustment Instruction Abnormal", _MAJOR),
    ("CT Wiring Abnormal", _MAJOR),
    ("DC Arc Fault (ADMC Alarm to be Cleared Manually)", _MAJOR),
    ("DC Switch Abnormal", _MINOR),
    ("Low Battery Discharge Capacity", _WARNING),
])

ALARM_REGISTER_MAP: Dict[int, Tuple[AlarmDefinition, ...]] = {
    1: ALARM_1,
    2: ALARM_2,
    3: ALARM_3,
}


def decode_alarm_register(index: int, value: int) -> List[AlarmDefinition]:
    """
    Active alarms of one alarm register.

    Args:
        index: Alarm register number (1, 2 or 3)
        value: Raw 16-bit register value

    Returns:
        Alarm definitions for every set bit, in ascending bit order
    """
    table = ALARM_REGISTER_MAP.get(index)
    if table is None:
        raise ValueError(f"Unknown alarm register {index}")
    if not value:
        return []
    return [alarm for alarm in table if value & (1 << alarm.bit)]


def decode_alarms(alarm_1: int, alarm_2: int, alarm_3: int) -> List[str]:
    """Alarm texts for all three registers, register 1 first"""
    texts = []
    for index, value in ((1, alarm_1), (2, alarm_2), (3, alarm_3)):
        texts.extend(alarm.text() for alarm in decode_alarm_register(index, value or 0))
    return texts


def alarm_fields(alarm_1: int, alarm_2: int, alarm_3: int,
                 always_include_texts: bool = False) -> Dict:
    """
    Build the alarm fields of an inverter record.

    alarm_texts is left out when no alarm is active, unless
    always_include_texts is set (fixed output schema).
    """
    fields = {
        'alarm_1': alarm_1,
        'alarm_2': alarm_2,
        'alarm_3': alarm_3,
    }
    texts = decode_alarms(alarm_1, alarm_2, alarm_3)
    if texts or always_include_texts:
        fields['alarm_texts'] = texts
    return fields


def decode_running_status(bitfield: int) -> List[str]:
    """Names of the set bits in the running status register (32000)"""
    return [name for bit, name in sorted(RUNNING_STATUS_BITS.items()) if bitfield & (1 << bit)]


def device_status_text(code: int) -> str:
    return DEVICE_STATUS.get(code, f"Unknown ({code:#06x})")
