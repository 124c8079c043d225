"""
Home Assistant MQTT discovery.

One discovery document per sensor, built once at startup and re-published
(retained) every time the MQTT connection comes up.
"""
from __future__ import annotations

import logging
from typing import Any

from snmp2mqtt.core.config import TargetConfig
from snmp2mqtt.core.util import md5, slugify
from snmp2mqtt.mqtt.publisher import MqttPublisher
from snmp2mqtt.mqtt.topics import Topics

logger = logging.getLogger(__name__)

BRIDGE_ID = "snmp2mqtt"

DiscoveryMessage = tuple[str, dict[str, Any]]


def build_device(target: TargetConfig) -> dict[str, Any]:
    """Device block shared by all sensors of one target."""
    device: dict[str, Any] = {
        "name": target.name or target.host,
        "identifiers": target.host,
        "via_device": BRIDGE_ID,
    }
    if target.device_manufacturer:
        device["manufacturer"] = target.device_manufacturer
    if target.device_model:
        device["model"] = target.device_model
    return device


def build_discovery_messages(
    targets: list[TargetConfig],
    topics: Topics,
    prefix: str = "homeassistant",
) -> list[DiscoveryMessage]:
    """
    Build (config_topic, document) pairs for every sensor of every target.

    ``unique_id`` is derived from host + OID, so it survives sensor renames.
    """
    messages: list[DiscoveryMessage] = []

    for target in targets:
        device = build_device(target)

        for sensor in target.sensors:
            component = "binary_sensor" if sensor.binary_sensor else "sensor"
            topic = f"{prefix}/{component}/{BRIDGE_ID}/{slugify(sensor.name)}/config"

            discovery: dict[str, Any] = {
                "availability": [
                    {"topic": topics.status_topic},
                    {"topic": topics.sensor_status_topic(sensor, target)},
                ],
                "availability_mode": "all",
                "device": device,
                "name": sensor.name,
                "unique_id": f"{BRIDGE_ID}.{md5(f'{target.host}-{sensor.oid}')}",
                "state_topic": topics.sensor_value_topic(sensor, target),
            }

            if sensor.unit_of_measurement:
                discovery["unit_of_measurement"] = sensor.unit_of_measurement
            if sensor.device_class:
                discovery["device_class"] = sensor.device_class
            if sensor.icon:
                discovery["icon"] = sensor.icon

            messages.append((topic, discovery))

    return messages


async def publish_discovery(publisher: MqttPublisher, messages: list[DiscoveryMessage]) -> int:
    """Publish discovery documents (retained). Returns how many went out."""
    sent = 0
    for topic, document in messages:
        if await publisher.publish(topic, document, retain=True):
            sent += 1
    logger.info("Published %d/%d Home Assistant discovery documents", sent, len(messages))
    return sent
