"""YAML Configuration loader for the Huawei Modbus reader"""

import os
import yaml
from typing import Dict, List, Optional
from dataclasses import dataclass, field, replace

MIN_UNIT_ID = 1
MAX_UNIT_ID = 247

DEFAULT_CATEGORIES = ["power", "status"]
DEFAULT_INVERTER_PATTERNS = ["SUN2000", "100KTL", "inverter"]


@dataclass(frozen=True)
class ModbusConfig:
    """Modbus TCP connection settings (one per physical session)"""
    host: str
    port: int = 502
    unit_id: int = 0
    timeout: float = 5.0
    retries: int = 3
    retry_delay: float = 0.1    # Backoff base, doubled on every attempt

    def with_unit_id(self, unit_id: int) -> 'ModbusConfig':
        """Copy of this config targeting another default unit id"""
        return replace(self, unit_id=unit_id)


@dataclass
class DiscoveryConfig:
    """Device discovery settings"""
    address_range: str = "1-15,21-30"
    inverter_range: str = "12-15"
    concurrency: int = 10
    parallel: bool = True
    inverter_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_INVERTER_PATTERNS))


@dataclass
class ReaderConfig:
    """Device data reader settings"""
    categories: List[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    batch_size: int = 3
    inter_device_delay: float = 0.1
    sequential: bool = True
    always_include_alarm_texts: bool = False
    smartlogger_unit_id: int = 3


@dataclass
class MQTTConfig:
    """MQTT broker settings"""
    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    base_topic: str = "huawei"
    retain: bool = False
    qos: int = 0
    client_id: str = ""


@dataclass
class GeneralConfig:
    """General application settings"""
    log_level: str = "INFO"
    log_file: str = ""


def parse_address_list(text: str) -> List[int]:
    """
    Parse a unit id list such as "1-15,21-30" or "12,13,14,15".

    Ranges are inclusive. Ids outside 1..247, inverted ranges and tokens
    that are not numbers are skipped rather than failing the whole parse.

    Returns:
        Sorted list without duplicates
    """
    addresses = set()
    if not text:
        return []

    for part in str(text).split(','):
        part = part.strip()
        if not part:
            continue

        if '-' in part:
            start_str, _, end_str = part.partition('-')
            try:
                start = int(start_str.strip())
                end = int(end_str.strip())
            except ValueError:
                continue
            if start > end:
                continue
            for unit_id in range(start, end + 1):
                if MIN_UNIT_ID <= unit_id <= MAX_UNIT_ID:
                    addresses.add(unit_id)
        else:
            try:
                unit_id = int(part)
            except ValueError:
                continue
            if MIN_UNIT_ID <= unit_id <= MAX_UNIT_ID:
                addresses.add(unit_id)

    return sorted(addresses)


class ConfigLoader:
    """YAML configuration loader with singleton pattern"""

    _instance: Optional['ConfigLoader'] = None

    def __init__(self, config_path: str = None, data: Dict = None, modbus_overrides: Dict = None):
        self.config: Dict = {}
        self.general: GeneralConfig = None
        self.modbus: ModbusConfig = None
        self.discovery: DiscoveryConfig = None
        self.reader: ReaderConfig = None
        self.mqtt: MQTTConfig = None
        self._modbus_overrides = {k: v for k, v in (modbus_overrides or {}).items() if v is not None}

        if data is not None:
            self.config = data
            self._parse_config()
        else:
            self._load_config(config_path)

    @classmethod
    def get_instance(cls, config_path: str = None) -> 'ConfigLoader':
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigLoader(config_path)
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton (useful for testing)"""
        cls._instance = None

    def _load_config(self, config_path: str = None):
        """Load and parse YAML configuration"""
        paths = [
            config_path,
            os.environ.get('HUAWEI_MODBUS_CONFIG'),
            '/app/config/huawei_modbus.yaml',
            'config/huawei_modbus.yaml',
            'huawei_modbus.yaml'
        ]

        for path in filter(None, paths):
            if os.path.exists(path):
                with open(path, 'r') as f:
                    self.config = yaml.safe_load(f) or {}
                self._parse_config()
                return

        # Command line settings alone are enough when they name the host
        if self._modbus_overrides.get('host'):
            self.config = {}
            self._parse_config()
            return

        raise FileNotFoundError(
            "No configuration file found. Searched paths:\n" +
            "\n".join(f"  - {p}" for p in filter(None, paths))
        )

    def _parse_config(self):
        """Parse configuration into dataclasses"""
        gen = self.config.get('general', {}) or {}
        self.general = GeneralConfig(
            log_level=gen.get('log_level', 'INFO'),
            log_file=gen.get('log_file', '')
        )

        # Modbus settings (host required)
        mb = dict(self.config.get('modbus', {}) or {})
        mb.update(self._modbus_overrides)
        if not mb.get('host'):
            raise ValueError("modbus.host is required in configuration")

        self.modbus = ModbusConfig(
            host=mb.get('host'),
            port=int(mb.get('port', 502)),
            unit_id=int(mb.get('unit_id', 0)),
            timeout=float(mb.get('timeout', 5.0)),
            retries=int(mb.get('retries', 3)),
            retry_delay=float(mb.get('retry_delay', 0.1))
        )

        disc = self.config.get('discovery', {}) or {}
        self.discovery = DiscoveryConfig(
            address_range=str(disc.get('address_range', '1-15,21-30')),
            inverter_range=str(disc.get('inverter_range', '12-15')),
            concurrency=int(disc.get('concurrency', 10)),
            parallel=bool(disc.get('parallel', True)),
            inverter_patterns=list(disc.get('inverter_patterns', DEFAULT_INVERTER_PATTERNS))
        )

        rd = self.config.get('reader', {}) or {}
        categories = rd.get('categories', DEFAULT_CATEGORIES)
        # Handle single string or list
        if isinstance(categories, str):
            categories = [c.strip() for c in categories.split(',') if c.strip()]

        self.reader = ReaderConfig(
            categories=list(categories),
            batch_size=int(rd.get('batch_size', 3)),
            inter_device_delay=float(rd.get('inter_device_delay', 0.1)),
            sequential=bool(rd.get('sequential', True)),
            always_include_alarm_texts=bool(rd.get('always_include_alarm_texts', False)),
            smartlogger_unit_id=int(rd.get('smartlogger_unit_id', 3))
        )

        mq = self.config.get('mqtt', {}) or {}
        self.mqtt = MQTTConfig(
            enabled=mq.get('enabled', False),
            host=mq.get('host', 'localhost'),
            port=int(mq.get('port', 1883)),
            username=mq.get('username', ''),
            password=mq.get('password', ''),
            base_topic=mq.get('base_topic', 'huawei'),
            retain=mq.get('retain', False),
            qos=int(mq.get('qos', 0)),
            client_id=mq.get('client_id', '')
        )


def get_config(config_path: str = None) -> ConfigLoader:
    """Get configuration singleton"""
    return ConfigLoader.get_instance(config_path)
