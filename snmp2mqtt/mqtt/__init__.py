"""MQTT publishing: broker connection and topic layout."""
from snmp2mqtt.mqtt.publisher import MqttPublisher
from snmp2mqtt.mqtt.topics import Topics, format_payload

__all__ = ["MqttPublisher", "Topics", "format_payload"]
