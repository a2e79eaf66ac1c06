"""Exception types for the Huawei Modbus reader"""


class HuaweiModbusError(Exception):
    """Base class for all reader errors."""


class TransportError(HuaweiModbusError):
    """Connect, timeout or socket failure. Retried up to the configured limit."""


class DecodeError(HuaweiModbusError):
    """Register payload could not be decoded into the requested type."""


class CategoryReadError(HuaweiModbusError):
    """A data category failed unexpectedly while reading one device."""

    def __init__(self, category: str, message: str):
        super().__init__(f"{category}: {message}")
        self.category = category
