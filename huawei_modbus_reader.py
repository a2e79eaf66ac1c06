#!/usr/bin/env python3
"""
Huawei Modbus Reader - SmartLogger / SUN2000 data acquisition over Modbus TCP

Runs one operation against a SmartLogger gateway and prints the result as
a JSON document on stdout (logs go to stderr).

Operations:
- smartlogger: plant-level data from the gateway itself
- discover: scan unit ids for devices behind the gateway
- inverters: read SUN2000 inverters by address or from discovery

Readings can also be published to MQTT when enabled in the config.
"""

import sys
import json
import asyncio
import argparse
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from huawei_modbus import (
    __version__,
    setup_logging,
    ConfigLoader,
    parse_address_list,
    HuaweiModbusConnection,
    SUN2000Reader,
    SmartLoggerReader,
    DiscoveryEngine,
    BatchReader,
    MQTTPublisher,
)
from huawei_modbus.orchestrator import devices_from_addresses, devices_from_discovery

SMARTLOGGER_GROUPS = ['all', 'power', 'environmental', 'system', 'alarms']


class HuaweiModbusReaderApp:
    """Main application class"""

    def __init__(self, config: ConfigLoader):
        self.config = config
        self.log = setup_logging(
            log_level=config.general.log_level,
            log_file=config.general.log_file or None
        )
        self.connection = HuaweiModbusConnection(config.modbus)
        self.mqtt_publisher: Optional[MQTTPublisher] = None

    def _metadata(self, operation: str, success: bool, **extra) -> Dict[str, Any]:
        meta = {
            'operation': operation,
            'host': self.config.modbus.host,
            'port': self.config.modbus.port,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'success': success,
        }
        meta.update(extra)
        return meta

    async def run(self, args) -> Dict[str, Any]:
        """
        Execute the selected operation.

        Returns:
            Output document with a _metadata block
        """
        if not await self.connection.connect():
            error = f"Failed to connect to Modbus device at {self.connection.endpoint}"
            self.log.error(error)
            return {'_metadata': self._metadata(args.command, False, error=error)}

        if self.config.mqtt.enabled:
            self.mqtt_publisher = MQTTPublisher(self.config.mqtt)
            await self.mqtt_publisher.connect()

        try:
            if args.command == 'smartlogger':
                output = await self._run_smartlogger(args)
            elif args.command == 'discover':
                output = await self._run_discover(args)
            else:
                output = await self._run_inverters(args)
        finally:
            if self.mqtt_publisher:
                await self.mqtt_publisher.disconnect()
            stats = self.connection.get_stats()
            await self.connection.disconnect()

        output['_metadata']['stats'] = stats
        return output

    async def _run_smartlogger(self, args) -> Dict[str, Any]:
        reader = SmartLoggerReader(self.connection, unit_id=self.config.reader.smartlogger_unit_id)
        group = args.group

        if group == 'all':
            data = await reader.read_all_data()
            if args.discover_inverters:
                engine = self._discovery_engine()
                inverters = await engine.discover_inverters(
                    parse_address_list(self.config.discovery.inverter_range)
                )
                data['connected_devices'] = [i.to_dict() for i in inverters]
        elif group == 'power':
            data = await reader.read_power_data()
        elif group == 'environmental':
            data = await reader.read_environmental_data()
        elif group == 'system':
            data = await reader.read_system_data()
        else:
            data = await reader.read_alarm_data()

        if self.mqtt_publisher:
            await self.mqtt_publisher.publish_smartlogger(data if group == 'all' else {group: data})

        return {'_metadata': self._metadata('smartlogger', True, group=group), 'data': data}

    def _discovery_engine(self) -> DiscoveryEngine:
        # Sequential discovery reuses the gateway session, parallel opens one per unit id
        return DiscoveryEngine(
            self.config.modbus,
            connection=self.connection,
            discovery=self.config.discovery,
        )

    async def _run_discover(self, args) -> Dict[str, Any]:
        engine = self._discovery_engine()
        parallel = False if args.sequential else None
        address_range = args.range or self.config.discovery.address_range

        devices = await engine.discover_devices(parse_address_list(address_range), parallel=parallel)
        inverters = await engine.discover_inverters(
            parse_address_list(self.config.discovery.inverter_range), parallel=parallel
        )

        if self.mqtt_publisher:
            await self.mqtt_publisher.publish_devices(devices)

        return {
            '_metadata': self._metadata('discover', True, address_range=address_range,
                                        device_count=len(devices), inverter_count=len(inverters)),
            'devices': [d.to_dict() for d in devices],
            'inverters': [i.to_dict() for i in inverters],
        }

    async def _run_inverters(self, args) -> Dict[str, Any]:
        reader_cfg = self.config.reader
        categories = _split_categories(args.categories) if args.categories else reader_cfg.categories

        if args.remap_only:
            categories = []

        reader = SUN2000Reader(
            self.connection,
            always_include_alarm_texts=reader_cfg.always_include_alarm_texts,
        )
        batch_reader = BatchReader(
            reader,
            batch_size=reader_cfg.batch_size,
            inter_device_delay=reader_cfg.inter_device_delay,
            sequential=reader_cfg.sequential,
            remap_only=args.remap_only,
        )

        if args.from_discovery:
            engine = self._discovery_engine()
            found = await engine.discover_devices(parse_address_list(self.config.discovery.address_range))
            devices = devices_from_discovery(found, filter_inverters=not args.all_devices,
                                             patterns=self.config.discovery.inverter_patterns)
            source = 'discovery'
        else:
            addresses = parse_address_list(args.addresses or self.config.discovery.inverter_range)
            devices = devices_from_addresses(addresses)
            source = 'addresses'

        if not devices:
            self.log.warning("No inverters to read")

        records = await batch_reader.read_devices(devices, categories)

        if self.mqtt_publisher:
            for record in records:
                await self.mqtt_publisher.publish_record(record)

        failed = sum(1 for r in records if r.error)
        return {
            '_metadata': self._metadata('inverters', True, source=source, categories=list(categories),
                                        remap_only=args.remap_only,
                                        device_count=len(records), failed_count=failed),
            'inverters': [r.to_dict() for r in records],
        }


def _split_categories(text: str) -> List[str]:
    return [c.strip() for c in text.split(',') if c.strip()]


def load_config(args) -> ConfigLoader:
    """Load the YAML config; --host alone is enough to run without a file"""
    return ConfigLoader(args.config, modbus_overrides={'host': args.host, 'port': args.port})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Huawei Modbus Reader - Read SmartLogger and SUN2000 data via Modbus TCP"
    )
    parser.add_argument(
        '-c', '--config',
        help='Path to configuration file',
        default=None
    )
    parser.add_argument(
        '-v', '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument('--host', help='Gateway host (overrides modbus.host)')
    parser.add_argument('--port', type=int, help='Gateway port (overrides modbus.port)')
    parser.add_argument('--indent', type=int, default=2, help='JSON indentation')

    sub = parser.add_subparsers(dest='command', required=True)

    sl = sub.add_parser('smartlogger', help='Read SmartLogger plant data')
    sl.add_argument('group', nargs='?', choices=SMARTLOGGER_GROUPS, default='all')
    sl.add_argument('--discover-inverters', action='store_true',
                    help="Include inverters found in discovery.inverter_range (group 'all' only)")

    disc = sub.add_parser('discover', help='Discover devices behind the gateway')
    disc.add_argument('--range', help='Unit id list, e.g. "1-15,21-30"')
    disc.add_argument('--sequential', action='store_true', help='Probe over one connection')

    inv = sub.add_parser('inverters', help='Read SUN2000 inverter data')
    source = inv.add_mutually_exclusive_group()
    source.add_argument('--addresses', help='Inverter addresses, e.g. "12-15"')
    source.add_argument('--from-discovery', action='store_true',
                        help='Discover devices first and read the inverters found')
    inv.add_argument('--all-devices', action='store_true',
                     help='With --from-discovery, read every device instead of inverter names only')
    inv.add_argument('--categories', help='Comma separated: device,power,voltages,currents,strings,status,alarms')
    inv.add_argument('--remap-only', action='store_true',
                     help='Read only the gateway remap block of each inverter (unit id 0)')

    return parser


def main():
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args()

    try:
        config = load_config(args)
    except FileNotFoundError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    app = HuaweiModbusReaderApp(config)
    output = asyncio.run(app.run(args))

    print(json.dumps(output, indent=args.indent, default=str))
    sys.exit(0 if output['_metadata']['success'] else 1)


if __name__ == "__main__":
    main()
