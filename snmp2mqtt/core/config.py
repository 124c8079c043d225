"""
Application configuration.

Bridge settings (MQTT broker, Home Assistant, logging) are loaded with
pydantic-settings from environment variables or a .env file.  Nested config
uses the ``__`` delimiter::

    MQTT__HOST=broker.local
    MQTT__USERNAME=snmp
    HOMEASSISTANT__PREFIX=homeassistant

The SNMP targets themselves live in a YAML file (``config/config.yaml`` by
default) and are validated into immutable pydantic models by
:func:`load_targets`.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from snmp2mqtt.core.enums import AuthProtocol, PrivProtocol, SnmpVersion

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Configuration file is missing or invalid."""


class MqttConfig(BaseModel):
    """MQTT broker connection config."""

    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    client_id: str = "snmp2mqtt"
    topic_prefix: str = "snmp2mqtt"
    qos: int = 0
    keepalive: int = 60
    reconnect_interval: float = 5.0


class HomeAssistantConfig(BaseModel):
    """Home Assistant MQTT discovery config."""

    discovery: bool = True
    prefix: str = "homeassistant"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    mqtt: MqttConfig = MqttConfig()
    homeassistant: HomeAssistantConfig = HomeAssistantConfig()

    log_level: str = Field(default="INFO", description="Root log level")
    config_file: Path = Field(
        default=Path("config/config.yaml"),
        description="YAML file listing the SNMP targets to poll.",
    )
    snmp_mock: bool = Field(
        default=False,
        description="Serve generated values instead of sending SNMP requests.",
    )
    reconnect_delay_seconds: float = Field(
        default=2.0,
        description="Delay before a disconnected session reconnects.",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ── Targets file ─────────────────────────────────────────────────


class SensorConfig(BaseModel):
    """One OID polled from a target, plus display metadata for consumers."""

    model_config = ConfigDict(frozen=True)

    oid: str
    name: str
    unit_of_measurement: str | None = None
    device_class: str | None = None
    icon: str | None = None
    binary_sensor: bool = False
    transform: str | None = None

    @field_validator("oid")
    @classmethod
    def _strip_leading_dot(cls, v: str) -> str:
        return v.strip().lstrip(".")


_USM_FIELDS = ("username", "auth_protocol", "auth_key", "priv_protocol", "priv_key")


class TargetConfig(BaseModel):
    """
    One SNMP device and the sensors polled from it.

    v1/v2c targets authenticate with ``community`` (default ``public``);
    v3 targets with ``username`` and optional auth/privacy keys.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = 161
    version: SnmpVersion = SnmpVersion.V1
    scan_interval: float = Field(default=10, gt=0, description="Seconds between fetches")

    community: str | None = None

    username: str | None = None
    auth_protocol: AuthProtocol | None = None
    auth_key: str | None = None
    priv_protocol: PrivProtocol | None = None
    priv_key: str | None = None

    name: str | None = None
    device_manufacturer: str | None = None
    device_model: str | None = None

    sensors: tuple[SensorConfig, ...] = ()

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, v: Any) -> Any:
        # YAML reads `version: 1` as an int
        if isinstance(v, (int, float)):
            return str(int(v))
        return v

    @model_validator(mode="after")
    def _check_credentials(self) -> "TargetConfig":
        if self.version is SnmpVersion.V3:
            if not self.username:
                raise ValueError(f"target {self.host}: SNMPv3 requires a username")
            if self.community is not None:
                raise ValueError(f"target {self.host}: SNMPv3 does not use a community")
            return self

        usm = [
            field for field in _USM_FIELDS if getattr(self, field) is not None
        ]
        if usm:
            raise ValueError(
                f"target {self.host}: {', '.join(usm)} only apply to SNMPv3, "
                f"not v{self.version.value}"
            )
        return self

    @property
    def effective_community(self) -> str:
        return self.community or "public"


def load_targets(path: Path | str) -> list[TargetConfig]:
    """
    Load and validate the targets file.

    Raises:
        ConfigError: file missing, unreadable, or failing validation.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    targets: list[TargetConfig] = []
    for i, item in enumerate(raw.get("targets") or []):
        try:
            targets.append(TargetConfig.model_validate(item))
        except ValidationError as e:
            raise ConfigError(f"{path}: targets[{i}] is invalid: {e}") from e

    total = sum(len(t.sensors) for t in targets)
    logger.info("Loaded %d targets, %d sensors from %s", len(targets), total, path)
    return targets
