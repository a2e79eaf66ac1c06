"""SmartLogger 3000 gateway data groups

The gateway answers on unit id 3, not 0 as the vendor documentation says.
Every group returns only the fields that could be read.
"""

import asyncio
from typing import Dict

from . import registers as regs
from .logging_setup import get_logger
from .modbus_client import HuaweiModbusConnection

SYSTEM_FIELDS = {
    'datetime': regs.SL_SYSTEM_DATETIME,
    'location_city': regs.SL_LOCATION_CITY,
    'dst_enable': regs.SL_DST_ENABLE,
}

POWER_FIELDS = {
    'dc_current_total': regs.SL_DC_CURRENT_TOTAL,
    'input_power_total': regs.SL_INPUT_POWER_TOTAL,
    'active_power_total': regs.SL_ACTIVE_POWER_TOTAL,
    'reactive_power_total': regs.SL_REACTIVE_POWER_TOTAL,
    'power_factor': regs.SL_POWER_FACTOR,
    'plant_status': regs.SL_PLANT_STATUS,
    'total_energy': regs.SL_TOTAL_ENERGY,
    'daily_energy': regs.SL_DAILY_ENERGY,
}

ENVIRONMENTAL_FIELDS = {
    'wind_speed': regs.SL_WIND_SPEED,
    'wind_direction': regs.SL_WIND_DIRECTION,
    'pv_temperature': regs.SL_PV_TEMPERATURE,
    'ambient_temperature': regs.SL_AMBIENT_TEMPERATURE,
    'irradiance': regs.SL_IRRADIANCE,
    'daily_irradiation': regs.SL_DAILY_IRRADIATION,
}

ALARM_FIELDS = {
    'alarm_info_1': regs.SL_ALARM_INFO_1,
    'alarm_info_2': regs.SL_ALARM_INFO_2,
    'certificate_alarms': regs.SL_CERTIFICATE_ALARMS,
}


class SmartLoggerReader:
    """Reads plant-level data from the SmartLogger itself."""

    def __init__(self, connection: HuaweiModbusConnection, unit_id: int = regs.SMARTLOGGER_UNIT_ID):
        self.connection = connection
        self.unit_id = unit_id
        self.log = get_logger()

    async def read_system_data(self) -> Dict:
        data = await self.connection.read_values(SYSTEM_FIELDS, self.unit_id)
        if 'dst_enable' in data:
            data['dst_enable'] = bool(data['dst_enable'])
        return data

    async def read_power_data(self) -> Dict:
        data = await self.connection.read_values(POWER_FIELDS, self.unit_id)
        if 'plant_status' in data:
            data['plant_status'] = regs.plant_status_text(data['plant_status'])
        return data

    async def read_environmental_data(self) -> Dict:
        return await self.connection.read_values(ENVIRONMENTAL_FIELDS, self.unit_id)

    async def read_alarm_data(self) -> Dict:
        """Raw gateway alarm words, not decoded"""
        return await self.connection.read_values(ALARM_FIELDS, self.unit_id)

    async def read_all_data(self) -> Dict:
        """
        Read all four groups concurrently.

        Returns:
            {'system': {...}, 'power': {...}, 'environmental': {...}, 'alarms': {...}}
        """
        system, power, environmental, alarms = await asyncio.gather(
            self.read_system_data(),
            self.read_power_data(),
            self.read_environmental_data(),
            self.read_alarm_data(),
        )
        self.log.debug(
            f"SmartLogger unit {self.unit_id}: read {len(system) + len(power) + len(environmental) + len(alarms)} values"
        )
        return {
            'system': system,
            'power': power,
            'environmental': environmental,
            'alarms': alarms,
        }
