"""Batch reading of many inverters through one gateway connection"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .config import DEFAULT_INVERTER_PATTERNS
from .discovery import is_inverter_name
from .logging_setup import get_logger
from .models import DeviceInfo, InverterRecord
from .sun2000 import SUN2000Reader


@dataclass
class DeviceTarget:
    """One inverter to read: remap index, direct unit id and optional name"""
    unit_id: int
    device_address: int
    device_name: Optional[str] = None


def devices_from_addresses(addresses: Iterable[int]) -> List[DeviceTarget]:
    """Targets for directly configured addresses (unit id = device address)"""
    return [DeviceTarget(unit_id=a, device_address=a) for a in addresses]


def devices_from_discovery(infos: Iterable[DeviceInfo], filter_inverters: bool = True,
                           patterns: Sequence[str] = DEFAULT_INVERTER_PATTERNS) -> List[DeviceTarget]:
    """
    Targets from discovery results.

    device_address falls back to unit_id when the gateway did not report one.
    """
    targets = []
    for info in infos:
        if filter_inverters and not is_inverter_name(info.device_name, patterns):
            continue
        address = info.device_address if info.device_address else info.unit_id
        targets.append(DeviceTarget(unit_id=info.unit_id, device_address=address,
                                    device_name=info.device_name))
    return targets


class BatchReader:
    """
    Reads a list of devices in fixed-size batches.

    One device failing never removes or reorders the others: it is returned
    as an error record in its own position. With remap_only the devices are
    read from the gateway's remap block alone and categories are ignored.
    """

    def __init__(self, reader: SUN2000Reader, batch_size: int = 3,
                 inter_device_delay: float = 0.1, sequential: bool = True,
                 remap_only: bool = False):
        self.reader = reader
        self.batch_size = max(1, batch_size)
        self.inter_device_delay = inter_device_delay
        self.sequential = sequential
        self.remap_only = remap_only
        self.log = get_logger()

    async def _read_one(self, device: DeviceTarget, categories: Sequence[str]) -> InverterRecord:
        try:
            if self.remap_only:
                return await self.reader.read_remapped_inverter(
                    device.device_address,
                    device_name=device.device_name,
                    unit_id=device.unit_id,
                )
            return await self.reader.read_inverter(
                device.device_address,
                categories,
                device_name=device.device_name,
                unit_id=device.unit_id,
            )
        except Exception as e:
            self.log.error(f"Unit {device.unit_id}: read failed: {e}")
            return InverterRecord.failed(device.unit_id, device.device_name, str(e) or e.__class__.__name__)

    async def _read_batch(self, batch: List[DeviceTarget], categories: Sequence[str],
                          first: bool) -> List[InverterRecord]:
        if not self.sequential:
            return list(await asyncio.gather(*(self._read_one(d, categories) for d in batch)))

        records = []
        for i, device in enumerate(batch):
            if (i > 0 or not first) and self.inter_device_delay > 0:
                await asyncio.sleep(self.inter_device_delay)
            records.append(await self._read_one(device, categories))
        return records

    async def read_devices(self, devices: Sequence[DeviceTarget],
                           categories: Sequence[str]) -> List[InverterRecord]:
        """
        Read all devices.

        Args:
            devices: Targets in output order
            categories: Data categories requested for every device

        Returns:
            One record per device, same order as devices
        """
        devices = list(devices)
        records: List[InverterRecord] = []

        for start in range(0, len(devices), self.batch_size):
            batch = devices[start:start + self.batch_size]
            self.log.debug(f"Reading batch {start // self.batch_size + 1}: "
                           f"units {[d.unit_id for d in batch]}")
            records.extend(await self._read_batch(batch, categories, first=(start == 0)))

        failed = sum(1 for r in records if r.error)
        self.log.info(f"Read {len(records)} device(s), {failed} with errors")
        return records
