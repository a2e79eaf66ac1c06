"""
Huawei Modbus Reader - SmartLogger / SUN2000 data acquisition over Modbus TCP

Reads plant, inverter and alarm data from a Huawei SmartLogger gateway
and the SUN2000 inverters behind it, with device discovery.
"""

__version__ = "1.0.0"

from .config import ConfigLoader, get_config, parse_address_list
from .logging_setup import setup_logging, get_logger
from .modbus_client import HuaweiModbusConnection, ReadResult
from .models import DeviceInfo, InverterRecord
from .sun2000 import SUN2000Reader
from .smartlogger import SmartLoggerReader
from .discovery import DiscoveryEngine
from .orchestrator import BatchReader
from .mqtt_publisher import MQTTPublisher

__all__ = [
    "__version__",
    "ConfigLoader",
    "get_config",
    "parse_address_list",
    "setup_logging",
    "get_logger",
    "HuaweiModbusConnection",
    "ReadResult",
    "DeviceInfo",
    "InverterRecord",
    "SUN2000Reader",
    "SmartLoggerReader",
    "DiscoveryEngine",
    "BatchReader",
    "MQTTPublisher",
]
