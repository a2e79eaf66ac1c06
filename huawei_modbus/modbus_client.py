"""Modbus TCP connection manager for Huawei SmartLogger / SUN2000 devices

Architecture:
- HuaweiModbusConnection owns one TCP session to a gateway host:port
- Every read returns a ReadResult instead of raising for protocol failures
- The active unit id is a critical section: a per-call override is applied
  under a lock and always restored to the configured default
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException

from . import codec
from .config import ModbusConfig
from .exceptions import DecodeError, TransportError
from .registers import RegisterDefinition
from .logging_setup import get_logger

T = TypeVar("T")
U = TypeVar("U")


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a register read: either a value or an error message."""
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> 'ReadResult[T]':
        return cls(True, value, None)

    @classmethod
    def fail(cls, error: str) -> 'ReadResult[T]':
        return cls(False, None, error or "Unknown Modbus error")

    def map(self, func: Callable[[T], U]) -> 'ReadResult[U]':
        """Decode a successful value; failures pass through unchanged."""
        if not self.success:
            return ReadResult.fail(self.error)
        try:
            return ReadResult.ok(func(self.value))
        except DecodeError as e:
            return ReadResult.fail(str(e))


class HuaweiModbusConnection:
    """Single Modbus TCP session with retry and unit id management."""

    def __init__(self, config: ModbusConfig):
        self.config = config
        self.log = get_logger()
        self.client: Optional[AsyncModbusTcpClient] = None
        self._state = ConnectionState.DISCONNECTED
        self._active_unit_id = config.unit_id
        self._unit_lock = asyncio.Lock()
        self.successful_reads = 0
        self.failed_reads = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def active_unit_id(self) -> int:
        """Unit id the next request on this session is addressed to."""
        return self._active_unit_id

    @property
    def is_connected(self) -> bool:
        return (
            self._state == ConnectionState.CONNECTED
            and self.client is not None
            and bool(self.client.connected)
        )

    @property
    def endpoint(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    async def connect(self) -> bool:
        """Establish the Modbus TCP session. Never raises."""
        self._state = ConnectionState.CONNECTING
        connected = False
        try:
            if self.client is None:
                self.client = AsyncModbusTcpClient(
                    self.config.host,
                    port=self.config.port,
                    timeout=self.config.timeout,
                    retries=0,
                    reconnect_delay=0,
                )
            connected = bool(await self.client.connect())
        except Exception as e:
            self.log.debug(f"Modbus connection error for {self.endpoint}: {e}")
            connected = False

        if connected:
            self._state = ConnectionState.CONNECTED
            self.log.debug(f"Modbus connected to {self.endpoint} (unit {self.config.unit_id})")
        else:
            self._state = ConnectionState.DISCONNECTED
            self.log.debug(f"Modbus connection to {self.endpoint} failed")
        return connected

    async def disconnect(self):
        """Close the session. Safe to call at any time, never raises."""
        client = self.client
        self.client = None
        self._state = ConnectionState.DISCONNECTED
        if client is None:
            return
        try:
            client.close()
        except Exception as e:
            self.log.debug(f"Ignoring error while closing {self.endpoint}: {e}")

    async def __aenter__(self) -> 'HuaweiModbusConnection':
        if not await self.connect():
            raise TransportError(f"Failed to connect to {self.endpoint}")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    async def _read_once(self, address: int, count: int):
        if not self.is_connected and not await self.connect():
            raise TransportError(f"Not connected to {self.endpoint}")
        try:
            return await self.client.read_holding_registers(
                address,
                count=count,
                device_id=self._active_unit_id,
            )
        except (ModbusException, asyncio.TimeoutError, OSError) as e:
            if self.client is None or not self.client.connected:
                self._state = ConnectionState.DISCONNECTED
            raise TransportError(str(e) or e.__class__.__name__) from e

    async def _read_with_retry(self, address: int, count: int) -> ReadResult[List[int]]:
        unit_id = self._active_unit_id
        attempts = max(1, self.config.retries + 1)
        last_error = ""

        for attempt in range(attempts):
            try:
                response = await self._read_once(address, count)
            except TransportError as e:
                last_error = str(e)
                self.log.debug(
                    f"Unit {unit_id}: read {address}+{count} failed "
                    f"(attempt {attempt + 1}/{attempts}): {last_error}"
                )
                if attempt < attempts - 1:
                    await asyncio.sleep(self.config.retry_delay * (2 ** attempt))
                continue

            # The device answered with a Modbus exception: retrying won't help
            if response.isError():
                self.failed_reads += 1
                return ReadResult.fail(f"Unit {unit_id}: register {address} error response: {response}")

            registers = list(response.registers or [])
            if len(registers) < count:
                self.failed_reads += 1
                return ReadResult.fail(
                    f"Unit {unit_id}: register {address} returned {len(registers)} of {count} registers"
                )

            self.successful_reads += 1
            return ReadResult.ok(registers[:count])

        self.failed_reads += 1
        return ReadResult.fail(f"Failed after {attempts} attempts: {last_error}")

    async def read_registers(self, address: int, count: int,
                             unit_id: Optional[int] = None) -> ReadResult[List[int]]:
        """
        Read holding registers.

        Args:
            address: First register address
            count: Number of registers
            unit_id: Optional unit id override for this call only

        Returns:
            ReadResult with the raw register words
        """
        if not self.is_connected and not await self.connect():
            self.failed_reads += 1
            return ReadResult.fail(f"Failed to connect to Modbus device at {self.endpoint}")

        target = self.config.unit_id if unit_id is None else unit_id
        async with self._unit_lock:
            self._active_unit_id = target
            try:
                return await self._read_with_retry(address, count)
            finally:
                self._active_unit_id = self.config.unit_id

    async def read_u16(self, address: int, unit_id: Optional[int] = None) -> ReadResult[int]:
        return (await self.read_registers(address, 1, unit_id)).map(codec.decode_u16)

    async def read_i16(self, address: int, unit_id: Optional[int] = None) -> ReadResult[int]:
        return (await self.read_registers(address, 1, unit_id)).map(codec.decode_i16)

    async def read_u32(self, address: int, unit_id: Optional[int] = None) -> ReadResult[int]:
        return (await self.read_registers(address, 2, unit_id)).map(codec.decode_u32)

    async def read_i32(self, address: int, unit_id: Optional[int] = None) -> ReadResult[int]:
        return (await self.read_registers(address, 2, unit_id)).map(codec.decode_i32)

    async def read_u64(self, address: int, unit_id: Optional[int] = None) -> ReadResult[int]:
        return (await self.read_registers(address, 4, unit_id)).map(codec.decode_u64)

    async def read_string(self, address: int, count: int, max_len: Optional[int] = None,
                          unit_id: Optional[int] = None) -> ReadResult[str]:
        length = max_len if max_len is not None else count * 2
        result = await self.read_registers(address, count, unit_id)
        return result.map(lambda words: codec.decode_string(words, length))

    async def read_value(self, reg: RegisterDefinition, unit_id: Optional[int] = None) -> ReadResult[Any]:
        """Read one register map entry, decoded and scaled"""
        return (await self.read_registers(reg.address, reg.count, unit_id)).map(reg.decode)

    async def read_values(self, fields: Dict[str, RegisterDefinition],
                          unit_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Read several register map entries concurrently.

        Returns:
            Dict with only the fields that were read and decoded successfully
        """
        keys = list(fields)
        results = await asyncio.gather(*(self.read_value(fields[k], unit_id) for k in keys))

        data = {}
        for key, result in zip(keys, results):
            if not result.success:
                self.log.debug(f"Register {fields[key].address} ({key}) unavailable: {result.error}")
            elif result.value is not None:
                data[key] = result.value
        return data

    def get_stats(self) -> dict:
        return {
            'endpoint': self.endpoint,
            'state': self._state.value,
            'successful_reads': self.successful_reads,
            'failed_reads': self.failed_reads,
        }
