"""
MQTT topic layout.

    {prefix}/status                        bridge online/offline (LWT)
    {prefix}/{host}/{sensor}/value         decoded sensor value
    {prefix}/{host}/{sensor}/status        sensor online/offline
"""
from __future__ import annotations

from snmp2mqtt.core.config import SensorConfig, TargetConfig
from snmp2mqtt.core.util import slugify

ONLINE = "online"
OFFLINE = "offline"


class Topics:
    """Deterministic topic names derived from target host and sensor name."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix.rstrip("/")

    @property
    def status_topic(self) -> str:
        return f"{self.prefix}/status"

    def _sensor_base(self, sensor: SensorConfig, target: TargetConfig) -> str:
        return f"{self.prefix}/{slugify(target.host)}/{slugify(sensor.name)}"

    def sensor_value_topic(self, sensor: SensorConfig, target: TargetConfig) -> str:
        return f"{self._sensor_base(sensor, target)}/value"

    def sensor_status_topic(self, sensor: SensorConfig, target: TargetConfig) -> str:
        return f"{self._sensor_base(sensor, target)}/status"


def format_payload(value: str | int | float | bool) -> str:
    """
    Render a decoded value as an MQTT payload.

    Booleans become ON/OFF (the binary_sensor defaults); ints go through
    str() so 64-bit counters stay exact.
    """
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)
