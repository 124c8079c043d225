"""snmp2mqtt - poll SNMP devices and publish the values to MQTT."""

__version__ = "0.1.0"
