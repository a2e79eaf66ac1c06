"""MQTT output for device records"""

import json
import uuid
from typing import Any, Dict, Optional

import aiomqtt

from .config import MQTTConfig
from .logging_setup import get_logger
from .models import DeviceInfo, InverterRecord


class MQTTPublisher:
    """
    Publishes readings to an MQTT broker.

    Topics:
        {base_topic}/inverter/{unit_id}          full record as JSON
        {base_topic}/inverter/{unit_id}/{field}  one value per field
        {base_topic}/smartlogger/{group}         gateway data group as JSON
        {base_topic}/devices                     discovery result as JSON
    """

    def __init__(self, config: MQTTConfig):
        self.config = config
        self.log = get_logger()
        self._client: Optional[aiomqtt.Client] = None
        self._client_id = config.client_id or f"huawei-modbus-{uuid.uuid4().hex[:8]}"
        self.published = 0

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> bool:
        if not self.config.enabled:
            self.log.info("MQTT is disabled in config")
            return False

        client = aiomqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username or None,
            password=self.config.password or None,
            identifier=self._client_id,
        )
        try:
            await client.__aenter__()
        except aiomqtt.MqttError as e:
            self.log.error(f"Failed to connect to MQTT broker {self.config.host}:{self.config.port}: {e}")
            return False

        self._client = client
        self.log.info(f"Connected to MQTT broker at {self.config.host}:{self.config.port}")
        return True

    async def disconnect(self):
        if self._client is None:
            return
        client = self._client
        self._client = None
        try:
            await client.__aexit__(None, None, None)
        except aiomqtt.MqttError as e:
            self.log.debug(f"Error during MQTT disconnect: {e}")

    async def __aenter__(self) -> 'MQTTPublisher':
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    async def publish(self, topic: str, payload: Any) -> bool:
        """
        Publish one message below base_topic.

        Args:
            topic: Topic suffix
            payload: dict/list are JSON encoded, other values sent as text

        Returns:
            True if published
        """
        if self._client is None:
            self.log.debug(f"Cannot publish to {topic}: not connected")
            return False

        full_topic = f"{self.config.base_topic}/{topic}"
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload)
        elif payload is None:
            message = ""
        else:
            message = str(payload)

        try:
            await self._client.publish(full_topic, message, qos=self.config.qos, retain=self.config.retain)
        except aiomqtt.MqttError as e:
            self.log.error(f"MQTT publish error on {full_topic}: {e}")
            return False

        self.published += 1
        self.log.debug(f"Published to {full_topic}: {message[:100]}")
        return True

    async def publish_record(self, record: InverterRecord) -> int:
        """Publish an inverter record as JSON plus one topic per scalar field"""
        data = record.to_dict()
        prefix = f"inverter/{record.unit_id}"
        count = int(await self.publish(prefix, data))

        for key, value in data.items():
            if key == 'unit_id' or isinstance(value, (dict, list)):
                continue
            if await self.publish(f"{prefix}/{key}", value):
                count += 1
        return count

    async def publish_smartlogger(self, data: Dict[str, Dict]) -> int:
        count = 0
        for group, values in data.items():
            if await self.publish(f"smartlogger/{group}", values):
                count += 1
        return count

    async def publish_devices(self, devices) -> bool:
        return await self.publish("devices", [d.to_dict() if isinstance(d, DeviceInfo) else d for d in devices])
