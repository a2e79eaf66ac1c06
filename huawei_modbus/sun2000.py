"""Category-scoped data reader for SUN2000 inverters behind a SmartLogger

Each category is an independent coroutine returning only the fields that
were read successfully. read_inverter() merges them into one InverterRecord.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

from . import codec
from . import registers as regs
from .alarms import alarm_fields, decode_running_status, device_status_text
from .exceptions import CategoryReadError, DecodeError
from .logging_setup import get_logger
from .models import InverterRecord
from .modbus_client import HuaweiModbusConnection

DEVICE_FIELDS = {
    'model': regs.INV_MODEL_NAME,
    'serial_number': regs.INV_SERIAL_NUMBER,
    'firmware_version': regs.INV_FIRMWARE_VERSION,
    'software_version': regs.INV_SOFTWARE_VERSION,
    'string_count': regs.INV_STRING_COUNT,
    'mppt_count': regs.INV_MPPT_COUNT,
    'rated_power': regs.INV_RATED_POWER,
}

POWER_FIELDS = {
    'input_power': regs.INV_INPUT_POWER,
    'active_power': regs.INV_ACTIVE_POWER,
    'reactive_power': regs.INV_REACTIVE_POWER,
    'peak_active_power': regs.INV_PEAK_ACTIVE_POWER,
    'power_factor': regs.INV_POWER_FACTOR,
    'efficiency': regs.INV_EFFICIENCY,
    'total_energy': regs.INV_TOTAL_ENERGY,
    'daily_energy': regs.INV_DAILY_ENERGY,
}

VOLTAGE_FIELDS = {
    'line_voltage_ab': regs.INV_LINE_VOLTAGE_AB,
    'line_voltage_bc': regs.INV_LINE_VOLTAGE_BC,
    'line_voltage_ca': regs.INV_LINE_VOLTAGE_CA,
    'phase_a_voltage': regs.INV_PHASE_A_VOLTAGE,
    'phase_b_voltage': regs.INV_PHASE_B_VOLTAGE,
    'phase_c_voltage': regs.INV_PHASE_C_VOLTAGE,
    'grid_frequency': regs.INV_GRID_FREQUENCY,
}

CURRENT_FIELDS = {
    'phase_a_current': regs.INV_PHASE_A_CURRENT,
    'phase_b_current': regs.INV_PHASE_B_CURRENT,
    'phase_c_current': regs.INV_PHASE_C_CURRENT,
}

STATUS_FIELDS = {
    'running_status': regs.INV_RUNNING_STATUS,
    'device_status': regs.INV_DEVICE_STATUS,
    'internal_temperature': regs.INV_INTERNAL_TEMPERATURE,
    'insulation_resistance': regs.INV_INSULATION_RESISTANCE,
    'fault_code': regs.INV_FAULT_CODE,
}

# Remap block fields, split by the request they arrive in
LEGACY_BLOCKS = [
    (regs.REMAP_POWER_BLOCK, {
        'active_power': regs.REMAP_ACTIVE_POWER,
        'reactive_power': regs.REMAP_REACTIVE_POWER,
        'dc_current': regs.REMAP_DC_CURRENT,
        'input_power': regs.REMAP_INPUT_POWER,
        'insulation_resistance': regs.REMAP_INSULATION_RESISTANCE,
        'power_factor': regs.REMAP_POWER_FACTOR,
    }),
    (regs.REMAP_STATUS_BLOCK, {
        'status': regs.REMAP_STATUS,
    }),
    (regs.REMAP_TEMPERATURE_BLOCK, {
        'cabinet_temperature': regs.REMAP_CABINET_TEMPERATURE,
    }),
    (regs.REMAP_FAULT_BLOCK, {
        'major_fault': regs.REMAP_MAJOR_FAULT,
        'minor_fault': regs.REMAP_MINOR_FAULT,
        'warning': regs.REMAP_WARNING,
    }),
]


class SUN2000Reader:
    """Reads SUN2000 inverter data through a shared gateway connection."""

    CATEGORIES = ("device", "power", "voltages", "currents", "strings", "status", "alarms")

    def __init__(self, connection: HuaweiModbusConnection,
                 always_include_alarm_texts: bool = False):
        self.connection = connection
        self.always_include_alarm_texts = always_include_alarm_texts
        self.log = get_logger()

        self._category_readers = {
            'device': self.read_device_info,
            'power': self.read_power,
            'voltages': self.read_voltages,
            'currents': self.read_currents,
            'strings': self.read_strings,
            'status': self.read_status,
            'alarms': self.read_alarms,
        }

    async def read_legacy_block(self, device_address: int) -> Dict:
        """
        Read the remap block of one inverter through the gateway (unit id 0).

        Blocks are read one after another; a failed block only drops its own
        fields.
        """
        data = {}
        base = regs.remap_base_address(device_address)

        for (offset, count), fields in LEGACY_BLOCKS:
            result = await self.connection.read_registers(base + offset, count, regs.REMAP_UNIT_ID)
            if not result.success:
                self.log.debug(f"Device {device_address}: remap block {base + offset} unavailable: {result.error}")
                continue

            words = result.value
            for key, reg in fields.items():
                start = reg.address - offset
                try:
                    data[key] = reg.decode(words[start:start + reg.count])
                except DecodeError as e:
                    self.log.debug(f"Device {device_address}: remap field {key} decode failed: {e}")

        return data

    async def read_device_info(self, unit_id: int) -> Dict:
        return await self.connection.read_values(DEVICE_FIELDS, unit_id)

    async def read_power(self, unit_id: int) -> Dict:
        return await self.connection.read_values(POWER_FIELDS, unit_id)

    async def read_voltages(self, unit_id: int) -> Dict:
        return await self.connection.read_values(VOLTAGE_FIELDS, unit_id)

    async def read_currents(self, unit_id: int) -> Dict:
        return await self.connection.read_values(CURRENT_FIELDS, unit_id)

    async def read_strings(self, unit_id: int, string_count: Optional[int] = None) -> Dict:
        """
        Read PV string voltage and current.

        Args:
            unit_id: Inverter unit id
            string_count: Number of strings; read from register 30071 when None

        Returns:
            {'pv_strings': [{'string', 'voltage', 'current', 'power'}, ...]}
            or an empty dict when nothing could be read
        """
        if string_count is None:
            result = await self.connection.read_value(regs.INV_STRING_COUNT, unit_id)
            if not result.success:
                self.log.debug(f"Unit {unit_id}: string count unavailable: {result.error}")
                return {}
            string_count = result.value

        string_count = max(0, min(int(string_count), regs.MAX_PV_STRINGS))
        strings = []

        for first, size in regs.pv_string_batches(string_count):
            address = regs.pv_string_registers(first)[0]
            result = await self.connection.read_registers(address, size * 2, unit_id)
            if not result.success:
                self.log.debug(f"Unit {unit_id}: PV strings {first}-{first + size - 1} unavailable: {result.error}")
                continue

            words = result.value
            for i in range(size):
                voltage = codec.apply_gain(codec.to_signed16(words[2 * i]), regs.INV_PV_VOLTAGE_GAIN)
                current = codec.apply_gain(codec.to_signed16(words[2 * i + 1]), regs.INV_PV_CURRENT_GAIN)
                strings.append({
                    'string': first + i,
                    'voltage': voltage,
                    'current': current,
                    'power': round(voltage * current, 2),
                })

        return {'pv_strings': strings} if strings else {}

    async def read_status(self, unit_id: int) -> Dict:
        data = await self.connection.read_values(STATUS_FIELDS, unit_id)
        if 'running_status' in data:
            data['running_status_text'] = decode_running_status(data['running_status'])
        if 'device_status' in data:
            data['device_status_text'] = device_status_text(data['device_status'])
        return data

    async def read_alarms(self, unit_id: int) -> Dict:
        # All three words are needed to build a consistent alarm list
        result = await self.connection.read_registers(regs.INV_ALARM_1.address, 3, unit_id)
        if not result.success:
            self.log.debug(f"Unit {unit_id}: alarm registers unavailable: {result.error}")
            return {}
        alarm_1, alarm_2, alarm_3 = result.value[:3]
        return alarm_fields(alarm_1, alarm_2, alarm_3, self.always_include_alarm_texts)

    def _select_categories(self, categories: Iterable[str]) -> List[str]:
        selected = []
        for category in categories:
            if category not in self._category_readers:
                self.log.warning(f"Ignoring unknown data category '{category}'")
                continue
            if category not in selected:
                selected.append(category)
        return selected

    async def read_inverter(self, device_address: int, categories: Iterable[str],
                            device_name: Optional[str] = None,
                            unit_id: Optional[int] = None) -> InverterRecord:
        """
        Read one inverter into a single record.

        The remap block is read first. Requested categories then run
        concurrently, addressed with the inverter's own unit id. Category
        fields overwrite remap fields with the same key. An unexpected
        exception in a category keeps the fields merged so far and sets
        record.error.

        Args:
            device_address: Device address behind the gateway (remap block index)
            categories: Category names from CATEGORIES
            device_name: Optional name carried into the record
            unit_id: Unit id for direct reads (defaults to device_address)
        """
        unit_id = device_address if unit_id is None else unit_id
        record = InverterRecord(unit_id, device_name)

        record.update(await self.read_legacy_block(device_address))

        selected = self._select_categories(categories)
        results = await asyncio.gather(
            *(self._category_readers[c](unit_id) for c in selected),
            return_exceptions=True
        )

        errors = []
        for category, result in zip(selected, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                error = CategoryReadError(category, str(result) or result.__class__.__name__)
                self.log.warning(f"Unit {unit_id}: {error}")
                errors.append(str(error))
                continue
            record.update(result)

        if errors:
            record.error = "; ".join(errors)
        elif not len(record):
            record.error = f"No data could be read from device {unit_id}"

        return record

    async def read_remapped_inverter(self, device_address: int,
                                     device_name: Optional[str] = None,
                                     unit_id: Optional[int] = None) -> InverterRecord:
        """Record built from the remap block only"""
        unit_id = device_address if unit_id is None else unit_id
        record = InverterRecord(unit_id, device_name)
        record.update(await self.read_legacy_block(device_address))
        if not len(record):
            record.error = f"No remapped registers readable for device address {device_address}"
        return record
