"""
SNMP → MQTT bridge.

Creates one PollingSession per configured target, all sharing one
scheduler, and turns their events into MQTT messages:

- response → value on the sensor value topic, ``online`` on its status topic
- error    → ``offline`` on the sensor status topic
"""
from __future__ import annotations

import logging
from typing import Any

from snmp2mqtt.core.config import HomeAssistantConfig, SensorConfig, TargetConfig
from snmp2mqtt.mqtt.publisher import MqttPublisher
from snmp2mqtt.mqtt.topics import OFFLINE, ONLINE, format_payload
from snmp2mqtt.services.homeassistant import build_discovery_messages, publish_discovery
from snmp2mqtt.services.scheduler import SchedulerService
from snmp2mqtt.snmp.decoder import DecodedValue
from snmp2mqtt.snmp.session import DEFAULT_RECONNECT_DELAY, PollingSession

logger = logging.getLogger(__name__)


class SnmpBridge:
    """Session manager and event sink for all polling sessions."""

    def __init__(
        self,
        targets: list[TargetConfig],
        engine: Any,
        publisher: MqttPublisher,
        scheduler: SchedulerService | None = None,
        homeassistant: HomeAssistantConfig | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self.targets = targets
        self.publisher = publisher
        self.scheduler = scheduler or SchedulerService()
        self.homeassistant = homeassistant or HomeAssistantConfig()
        self._engine = engine
        self._reconnect_delay = reconnect_delay
        self.sessions: list[PollingSession] = []

        self._discovery = []
        if self.homeassistant.discovery:
            self._discovery = build_discovery_messages(
                targets, publisher.topics, self.homeassistant.prefix,
            )
            publisher.add_connect_hook(self._publish_discovery)

    async def start(self) -> None:
        """Start the scheduler and one polling session per target."""
        self.scheduler.start()

        for target in self.targets:
            session = PollingSession(
                target,
                self._engine,
                self.scheduler,
                reconnect_delay=self._reconnect_delay,
            )
            session.on_response(self._handle_response)
            session.on_error(self._handle_error)
            self.sessions.append(session)
            await session.start()

        logger.info("Bridge started with %d targets", len(self.sessions))

    async def stop(self) -> None:
        """Stop every session, then the scheduler."""
        for session in self.sessions:
            session.stop()
        self.scheduler.stop()
        logger.info("Bridge stopped")

    async def _publish_discovery(self) -> None:
        await publish_discovery(self.publisher, self._discovery)

    async def _handle_response(
        self, value: DecodedValue, sensor: SensorConfig, target: TargetConfig,
    ) -> None:
        topics = self.publisher.topics
        logger.debug("%s/%s = %r", target.host, sensor.name, value)
        await self.publisher.publish(
            topics.sensor_value_topic(sensor, target), format_payload(value),
        )
        await self.publisher.publish(topics.sensor_status_topic(sensor, target), ONLINE)

    async def _handle_error(
        self, error: Exception, sensor: SensorConfig, target: TargetConfig,
    ) -> None:
        logger.warning(
            "Sensor '%s' (%s) on %s failed: %s",
            sensor.name, sensor.oid, target.host, error,
        )
        await self.publisher.publish(
            self.publisher.topics.sensor_status_topic(sensor, target), OFFLINE,
        )
