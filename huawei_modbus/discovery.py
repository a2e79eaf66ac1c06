"""Device discovery behind a SmartLogger gateway

Probes unit ids by reading the identification block (65522-65534).
Units that do not answer with a device name are skipped silently.

Parallel mode opens one dedicated connection per unit id being probed,
so concurrent probes never share the mutable unit id of a session.
"""

import asyncio
from typing import Callable, Iterable, List, Optional, Sequence

from . import registers as regs
from .config import DEFAULT_INVERTER_PATTERNS, MAX_UNIT_ID, MIN_UNIT_ID, DiscoveryConfig, ModbusConfig
from .logging_setup import get_logger
from .models import DeviceInfo
from .modbus_client import HuaweiModbusConnection

DEFAULT_DEVICE_RANGE = list(range(MIN_UNIT_ID, MAX_UNIT_ID + 1))
DEFAULT_INVERTER_RANGE = [12, 13, 14, 15]
INVERTER_NAME_FILTER = "SUN2000"
GATEWAY_NAME = "SmartLogger"

ConnectionFactory = Callable[[ModbusConfig], HuaweiModbusConnection]


def is_inverter_name(name: Optional[str], patterns: Sequence[str] = DEFAULT_INVERTER_PATTERNS) -> bool:
    """True if any pattern appears in the device name (case-sensitive)"""
    if not name:
        return False
    return any(pattern in name for pattern in patterns)


def classify_device(name: Optional[str], patterns: Sequence[str] = DEFAULT_INVERTER_PATTERNS) -> str:
    if name and GATEWAY_NAME in name:
        return "gateway"
    if is_inverter_name(name, patterns):
        return "inverter"
    return "other"


class DiscoveryEngine:
    """Scans unit ids for devices, sequentially or in parallel batches."""

    def __init__(self, config: ModbusConfig,
                 connection: Optional[HuaweiModbusConnection] = None,
                 connection_factory: Optional[ConnectionFactory] = None,
                 discovery: Optional[DiscoveryConfig] = None):
        self.config = config
        self.connection = connection
        self.connection_factory = connection_factory or HuaweiModbusConnection
        self.discovery = discovery or DiscoveryConfig()
        self.log = get_logger()

    async def probe_unit(self, connection: HuaweiModbusConnection, unit_id: int,
                         name_filter: Optional[str] = None) -> Optional[DeviceInfo]:
        """
        Identify the device answering on one unit id.

        Args:
            connection: Connected session to probe through
            unit_id: Unit id to probe
            name_filter: Only accept devices whose name contains this text

        Returns:
            DeviceInfo, or None when nothing answers or the name does not match
        """
        name_result = await connection.read_value(regs.DEVICE_NAME, unit_id)
        if not name_result.success or not name_result.value:
            return None

        device_name = name_result.value
        if name_filter and name_filter not in device_name:
            self.log.debug(f"Unit {unit_id}: '{device_name}' does not match '{name_filter}'")
            return None

        status, port, address = await asyncio.gather(
            connection.read_value(regs.DEVICE_CONNECTION_STATUS, unit_id),
            connection.read_value(regs.DEVICE_PORT_NUMBER, unit_id),
            connection.read_value(regs.DEVICE_ADDRESS, unit_id),
        )

        info = DeviceInfo(
            unit_id=unit_id,
            device_name=device_name,
            device_address=address.value if address.success else None,
            port_number=port.value if port.success else None,
            connection_status=regs.connection_status_text(status.value) if status.success else None,
            device_type=classify_device(device_name, self.discovery.inverter_patterns),
        )
        self.log.info(f"Found {info.device_type} at unit {unit_id}: {device_name}")
        return info

    async def discover_sequential(self, unit_ids: Iterable[int],
                                  name_filter: Optional[str] = None) -> List[DeviceInfo]:
        """Probe unit ids one by one over a single shared connection"""
        connection = self.connection
        owned = connection is None
        if owned:
            connection = self.connection_factory(self.config)

        discovered = []
        try:
            if not connection.is_connected and not await connection.connect():
                self.log.warning(f"Discovery: cannot connect to {connection.endpoint}")
                return discovered

            for unit_id in unit_ids:
                info = await self.probe_unit(connection, unit_id, name_filter)
                if info:
                    discovered.append(info)
        finally:
            if owned:
                await connection.disconnect()

        return discovered

    async def _probe_dedicated(self, unit_id: int, name_filter: Optional[str]) -> Optional[DeviceInfo]:
        connection = self.connection_factory(self.config.with_unit_id(unit_id))
        try:
            if not await connection.connect():
                self.log.debug(f"Unit {unit_id}: connection to {connection.endpoint} failed")
                return None
            return await self.probe_unit(connection, unit_id, name_filter)
        except Exception as e:
            self.log.debug(f"Unit {unit_id}: probe failed: {e}")
            return None
        finally:
            await connection.disconnect()

    async def discover_parallel(self, unit_ids: Iterable[int], concurrency: int = 10,
                                name_filter: Optional[str] = None) -> List[DeviceInfo]:
        """
        Probe unit ids in batches of `concurrency`, each on its own connection.

        Results keep the order of unit_ids.
        """
        unit_ids = list(unit_ids)
        concurrency = max(1, concurrency)
        discovered = []

        for i in range(0, len(unit_ids), concurrency):
            batch = unit_ids[i:i + concurrency]
            results = await asyncio.gather(*(self._probe_dedicated(u, name_filter) for u in batch))
            discovered.extend(info for info in results if info)

        return discovered

    async def discover_devices(self, unit_ids: Optional[Iterable[int]] = None,
                               parallel: Optional[bool] = None) -> List[DeviceInfo]:
        """Find every device answering in unit_ids (default 1-247)"""
        unit_ids = list(unit_ids) if unit_ids is not None else DEFAULT_DEVICE_RANGE
        parallel = self.discovery.parallel if parallel is None else parallel

        self.log.info(f"Discovering devices on {len(unit_ids)} unit id(s) "
                      f"({'parallel' if parallel else 'sequential'})")
        if parallel:
            devices = await self.discover_parallel(unit_ids, self.discovery.concurrency)
        else:
            devices = await self.discover_sequential(unit_ids)
        self.log.info(f"Discovery complete: {len(devices)} device(s) found")
        return devices

    async def discover_inverters(self, unit_ids: Optional[Iterable[int]] = None,
                                 parallel: Optional[bool] = None) -> List[DeviceInfo]:
        """Find SUN2000 inverters in unit_ids (default 12-15)"""
        unit_ids = list(unit_ids) if unit_ids is not None else DEFAULT_INVERTER_RANGE
        parallel = self.discovery.parallel if parallel is None else parallel

        if parallel:
            concurrency = min(self.discovery.concurrency, 5)
            inverters = await self.discover_parallel(unit_ids, concurrency, INVERTER_NAME_FILTER)
        else:
            inverters = await self.discover_sequential(unit_ids, INVERTER_NAME_FILTER)
        self.log.info(f"Inverter discovery complete: {len(inverters)} inverter(s) found")
        return inverters
