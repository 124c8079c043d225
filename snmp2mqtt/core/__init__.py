"""Core module - contains enums, configuration, and shared helpers."""
from .config import ConfigError, SensorConfig, Settings, TargetConfig, get_settings, load_targets
from .enums import AuthProtocol, PrivProtocol, SecurityLevel, SessionState, SnmpVersion, ValueType

__all__ = [
    "AuthProtocol",
    "ConfigError",
    "PrivProtocol",
    "SecurityLevel",
    "SensorConfig",
    "SessionState",
    "Settings",
    "SnmpVersion",
    "TargetConfig",
    "ValueType",
    "get_settings",
    "load_targets",
]
