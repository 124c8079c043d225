"""
Services package.

Provides the shared scheduler, Home Assistant discovery, and the bridge
that wires polling sessions to MQTT.
"""
