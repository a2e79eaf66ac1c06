"""Register map and address mapping for Huawei SmartLogger and SUN2000 devices

Three address spaces are used:
- SmartLogger direct registers: fixed absolute addresses on the gateway
- Remap block: 51000 + 25 * (device address - 1) + offset, read through the
  gateway with unit id 0; exposes a fixed telemetry subset per inverter
- SUN2000 direct registers: absolute addresses read with the inverter's own
  unit id as the per-call override
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from . import codec
from .config import MAX_UNIT_ID, MIN_UNIT_ID


class DataType(Enum):
    U16 = "u16"
    I16 = "i16"
    U32 = "u32"
    I32 = "i32"
    U64 = "u64"
    STRING = "string"


_DECODERS = {
    DataType.U16: codec.decode_u16,
    DataType.I16: codec.decode_i16,
    DataType.U32: codec.decode_u32,
    DataType.I32: codec.decode_i32,
    DataType.U64: codec.decode_u64,
}


@dataclass(frozen=True)
class RegisterDefinition:
    """A single value in the register map."""
    address: int
    count: int
    data_type: DataType
    gain: int = 1
    unit: Optional[str] = None

    def decode(self, words: Sequence[int]):
        """
        Decode and scale this value from its register words.

        Returns:
            Value with gain applied; STRING registers give a str, or None when empty
        """
        if self.data_type == DataType.STRING:
            return codec.decode_string(words, self.count * 2) or None
        return codec.apply_gain(_DECODERS[self.data_type](words), self.gain)


# ============================================================================
# SmartLogger direct registers (unit id 3 on the gateway, not 0 as documented)
# ============================================================================

SMARTLOGGER_UNIT_ID = 3

# System control
SL_SYSTEM_DATETIME = RegisterDefinition(40000, 2, DataType.U32)
SL_LOCATION_CITY = RegisterDefinition(40002, 2, DataType.U32)
SL_DST_ENABLE = RegisterDefinition(40004, 1, DataType.U16)

# Environmental monitor
SL_WIND_SPEED = RegisterDefinition(40031, 1, DataType.I16, 10, "m/s")
SL_WIND_DIRECTION = RegisterDefinition(40032, 1, DataType.I16, 1, "°")
SL_PV_TEMPERATURE = RegisterDefinition(40033, 1, DataType.I16, 10, "°C")
SL_AMBIENT_TEMPERATURE = RegisterDefinition(40034, 1, DataType.I16, 10, "°C")
SL_IRRADIANCE = RegisterDefinition(40035, 1, DataType.I16, 10, "W/m²")
SL_DAILY_IRRADIATION = RegisterDefinition(40036, 2, DataType.U32, 1000, "MJ/m²")

# Plant power
SL_DC_CURRENT_TOTAL = RegisterDefinition(40500, 1, DataType.I16, 10, "A")
SL_INPUT_POWER_TOTAL = RegisterDefinition(40521, 2, DataType.U32, 1000, "kW")
SL_ACTIVE_POWER_TOTAL = RegisterDefinition(40525, 2, DataType.I32, 1000, "kW")
SL_POWER_FACTOR = RegisterDefinition(40532, 1, DataType.I16, 1000)
SL_PLANT_STATUS = RegisterDefinition(40543, 1, DataType.U16)
SL_REACTIVE_POWER_TOTAL = RegisterDefinition(40544, 2, DataType.I32, 1000, "kvar")
SL_TOTAL_ENERGY = RegisterDefinition(40560, 2, DataType.U32, 10, "kWh")
SL_DAILY_ENERGY = RegisterDefinition(40562, 2, DataType.U32, 10, "kWh")

# Alarms
SL_ALARM_INFO_1 = RegisterDefinition(50000, 1, DataType.U16)
SL_ALARM_INFO_2 = RegisterDefinition(50001, 1, DataType.U16)
SL_CERTIFICATE_ALARMS = RegisterDefinition(50002, 1, DataType.U16)

# Identification block, readable for every unit id behind the gateway
DEVICE_PORT_NUMBER = RegisterDefinition(65522, 1, DataType.U16)
DEVICE_ADDRESS = RegisterDefinition(65523, 1, DataType.U16)
DEVICE_NAME = RegisterDefinition(65524, 10, DataType.STRING)
DEVICE_NAME_MAX_LEN = 20
DEVICE_CONNECTION_STATUS = RegisterDefinition(65534, 1, DataType.U16)

CONNECTION_STATUS_ONLINE = 0xB001
CONNECTION_STATUS_OFFLINE = 0xB000

PLANT_STATUS = {
    1: "Unlimited",
    2: "Limited",
    3: "Idle",
    4: "Outage",
    5: "Communication Interrupt",
}


def connection_status_text(value: int) -> str:
    if value == CONNECTION_STATUS_ONLINE:
        return "Online"
    if value == CONNECTION_STATUS_OFFLINE:
        return "Offline"
    return "Unknown"


def plant_status_text(value: int) -> str:
    return PLANT_STATUS.get(value, f"Unknown ({value})")


# ============================================================================
# Remap block (51000 + 25 * (address - 1) + offset), unit id 0
# ============================================================================

REMAP_BASE = 51000
REMAP_STRIDE = 25
REMAP_UNIT_ID = 0

# Offsets within one inverter's block
REMAP_ACTIVE_POWER = RegisterDefinition(0, 2, DataType.I32, 1000, "kW")
REMAP_REACTIVE_POWER = RegisterDefinition(2, 2, DataType.I32, 1000, "kvar")
REMAP_DC_CURRENT = RegisterDefinition(4, 1, DataType.I16, 100, "A")
REMAP_INPUT_POWER = RegisterDefinition(5, 2, DataType.U32, 1000, "kW")
REMAP_INSULATION_RESISTANCE = RegisterDefinition(7, 1, DataType.U16, 1000, "MΩ")
REMAP_POWER_FACTOR = RegisterDefinition(8, 1, DataType.I16, 1000)
REMAP_STATUS = RegisterDefinition(9, 1, DataType.U16)
REMAP_CABINET_TEMPERATURE = RegisterDefinition(11, 1, DataType.I16, 10, "°C")
REMAP_MAJOR_FAULT = RegisterDefinition(12, 2, DataType.U32)
REMAP_MINOR_FAULT = RegisterDefinition(14, 2, DataType.U32)
REMAP_WARNING = RegisterDefinition(16, 2, DataType.U32)

# Blocks read in one request each: (offset, count)
REMAP_POWER_BLOCK = (0, 9)
REMAP_STATUS_BLOCK = (9, 1)
REMAP_TEMPERATURE_BLOCK = (11, 1)
REMAP_FAULT_BLOCK = (12, 6)

REMAP_LAST_OFFSET = REMAP_WARNING.address + REMAP_WARNING.count - 1


def _check_device_address(device_address: int):
    if not MIN_UNIT_ID <= device_address <= MAX_UNIT_ID:
        raise ValueError(
            f"Device address must be between {MIN_UNIT_ID} and {MAX_UNIT_ID}, got {device_address}"
        )


def remap_base_address(device_address: int) -> int:
    """First register of an inverter's remap block"""
    _check_device_address(device_address)
    return REMAP_BASE + REMAP_STRIDE * (device_address - 1)


def remapped_register(device_address: int, offset: int) -> int:
    """Absolute address of a field inside an inverter's remap block"""
    if not 0 <= offset < REMAP_STRIDE:
        raise ValueError(f"Remap offset must be between 0 and {REMAP_STRIDE - 1}, got {offset}")
    return remap_base_address(device_address) + offset


def remap_register_range(device_address: int) -> Tuple[int, int]:
    """Inclusive (first, last) register range reserved for one inverter"""
    base = remap_base_address(device_address)
    return base, base + REMAP_STRIDE - 1


# ============================================================================
# SUN2000 direct registers (unit id = the inverter's own address)
# ============================================================================

INV_MODEL_NAME = RegisterDefinition(30000, 15, DataType.STRING)
INV_SERIAL_NUMBER = RegisterDefinition(30015, 10, DataType.STRING)
INV_FIRMWARE_VERSION = RegisterDefinition(30035, 15, DataType.STRING)
INV_SOFTWARE_VERSION = RegisterDefinition(30050, 15, DataType.STRING)
INV_STRING_COUNT = RegisterDefinition(30071, 1, DataType.U16)
INV_MPPT_COUNT = RegisterDefinition(30072, 1, DataType.U16)
INV_RATED_POWER = RegisterDefinition(30073, 2, DataType.U32, 1, "W")

INV_RUNNING_STATUS = RegisterDefinition(32000, 1, DataType.U16)
INV_ALARM_1 = RegisterDefinition(32008, 1, DataType.U16)
INV_ALARM_2 = RegisterDefinition(32009, 1, DataType.U16)
INV_ALARM_3 = RegisterDefinition(32010, 1, DataType.U16)

# PV strings: voltage / current pairs starting at 32016
INV_PV_FIRST = 32016
INV_PV_VOLTAGE_GAIN = 10
INV_PV_CURRENT_GAIN = 100
MAX_PV_STRINGS = 24
PV_STRINGS_PER_READ = 10

INV_INPUT_POWER = RegisterDefinition(32064, 2, DataType.I32, 1000, "kW")
INV_LINE_VOLTAGE_AB = RegisterDefinition(32066, 1, DataType.U16, 10, "V")
INV_LINE_VOLTAGE_BC = RegisterDefinition(32067, 1, DataType.U16, 10, "V")
INV_LINE_VOLTAGE_CA = RegisterDefinition(32068, 1, DataType.U16, 10, "V")
INV_PHASE_A_VOLTAGE = RegisterDefinition(32069, 1, DataType.U16, 10, "V")
INV_PHASE_B_VOLTAGE = RegisterDefinition(32070, 1, DataType.U16, 10, "V")
INV_PHASE_C_VOLTAGE = RegisterDefinition(32071, 1, DataType.U16, 10, "V")
INV_PHASE_A_CURRENT = RegisterDefinition(32072, 2, DataType.I32, 1000, "A")
INV_PHASE_B_CURRENT = RegisterDefinition(32074, 2, DataType.I32, 1000, "A")
INV_PHASE_C_CURRENT = RegisterDefinition(32076, 2, DataType.I32, 1000, "A")
INV_PEAK_ACTIVE_POWER = RegisterDefinition(32078, 2, DataType.I32, 1000, "kW")
INV_ACTIVE_POWER = RegisterDefinition(32080, 2, DataType.I32, 1000, "kW")
INV_REACTIVE_POWER = RegisterDefinition(32082, 2, DataType.I32, 1000, "kvar")
INV_POWER_FACTOR = RegisterDefinition(32084, 1, DataType.I16, 1000)
INV_GRID_FREQUENCY = RegisterDefinition(32085, 1, DataType.U16, 100, "Hz")
INV_EFFICIENCY = RegisterDefinition(32086, 1, DataType.U16, 100, "%")
INV_INTERNAL_TEMPERATURE = RegisterDefinition(32087, 1, DataType.I16, 10, "°C")
INV_INSULATION_RESISTANCE = RegisterDefinition(32088, 1, DataType.U16, 1000, "MΩ")
INV_DEVICE_STATUS = RegisterDefinition(32089, 1, DataType.U16)
INV_FAULT_CODE = RegisterDefinition(32090, 1, DataType.U16)
INV_TOTAL_ENERGY = RegisterDefinition(32106, 2, DataType.U32, 100, "kWh")
INV_DAILY_ENERGY = RegisterDefinition(32114, 2, DataType.U32, 100, "kWh")


def pv_string_registers(string_number: int) -> Tuple[int, int]:
    """(voltage, current) register addresses of a 1-based PV string"""
    if not 1 <= string_number <= MAX_PV_STRINGS:
        raise ValueError(f"PV string must be between 1 and {MAX_PV_STRINGS}, got {string_number}")
    voltage = INV_PV_FIRST + 2 * (string_number - 1)
    return voltage, voltage + 1


def pv_string_batches(string_count: int) -> List[Tuple[int, int]]:
    """
    Split PV strings into transport-sized reads.

    Returns:
        List of (first string number, number of strings) with at most
        PV_STRINGS_PER_READ strings (20 registers) per entry
    """
    batches = []
    first = 1
    while first <= string_count:
        size = min(PV_STRINGS_PER_READ, string_count - first + 1)
        batches.append((first, size))
        first += size
    return batches


DEVICE_STATUS: Dict[int, str] = {
    0x0000: "Standby: initializing",
    0x0001: "Standby: detecting insulation resistance",
    0x0002: "Standby: detecting irradiation",
    0x0003: "Standby: grid detecting",
    0x0100: "Starting",
    0x0200: "On-grid",
    0x0201: "Grid connection: power limited",
    0x0202: "Grid connection: self-derating",
    0x0203: "Off-grid running",
    0x0300: "Shutdown: fault",
    0x0301: "Shutdown: command",
    0x0302: "Shutdown: OVGR",
    0x0303: "Shutdown: communication disconnected",
    0x0304: "Shutdown: power limited",
    0x0305: "Shutdown: manual startup required",
    0x0306: "Shutdown: DC switches disconnected",
    0x0307: "Shutdown: rapid cutoff",
    0x0308: "Shutdown: input underpower",
    0x0401: "Grid scheduling: cosphi-P curve",
    0x0402: "Grid scheduling: Q-U curve",
    0x0403: "Grid scheduling: PF-U curve",
    0x0404: "Grid scheduling: dry contact",
    0x0405: "Grid scheduling: Q-P curve",
    0x0500: "Spot-check ready",
    0x0501: "Spot-checking",
    0x0600: "Inspecting",
    0x0700: "AFCI self check",
    0x0800: "I-V scanning",
    0x0900: "DC input detection",
    0x0A00: "Running: off-grid charging",
    0xA000: "Standby: no irradiation",
}

# Running status bitfield (register 32000)
RUNNING_STATUS_BITS: Dict[int, str] = {
    0: "Standby",
    1: "Grid-connected",
    2: "Grid-connected normally",
    3: "Grid connection with derating due to power rationing",
    4: "Grid connection with derating due to internal causes",
    5: "Normal stop",
    6: "Stop due to faults",
    7: "Stop due to power rationing",
    8: "Shutdown",
    9: "Spot check",
}
