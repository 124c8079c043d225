"""Tests for settings and the targets file loader."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from snmp2mqtt.core.config import ConfigError, SensorConfig, Settings, TargetConfig, load_targets
from snmp2mqtt.core.enums import AuthProtocol, PrivProtocol, SnmpVersion


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_targets_with_defaults(tmp_path):
    path = _write(tmp_path, """
targets:
  - host: 10.0.0.1
    sensors:
      - oid: .1.3.6.1.2.1.1.3.0
        name: Uptime
""")

    [target] = load_targets(path)

    assert target.port == 161
    assert target.version is SnmpVersion.V1
    assert target.scan_interval == 10
    assert target.effective_community == "public"
    assert target.sensors[0].oid == "1.3.6.1.2.1.1.3.0"
    assert target.sensors[0].binary_sensor is False


def test_load_v3_target(tmp_path):
    path = _write(tmp_path, """
targets:
  - host: router.lan
    version: 3
    username: monitor
    auth_protocol: sha256
    auth_key: authpass
    priv_protocol: aes
    priv_key: privpass
    scan_interval: 30
""")

    [target] = load_targets(path)

    assert target.version is SnmpVersion.V3
    assert target.auth_protocol is AuthProtocol.SHA256
    assert target.priv_protocol is PrivProtocol.AES
    assert target.scan_interval == 30
    assert target.sensors == ()


@pytest.mark.parametrize("version, expected", [(1, SnmpVersion.V1), ("2c", SnmpVersion.V2C), (3.0, SnmpVersion.V3)])
def test_version_accepts_int_and_str(version, expected):
    username = "u" if expected is SnmpVersion.V3 else None
    target = TargetConfig(host="10.0.0.1", version=version, username=username)
    assert target.version is expected


def test_v3_requires_username():
    with pytest.raises(ValidationError, match="username"):
        TargetConfig(host="10.0.0.1", version="3")


@pytest.mark.parametrize(
    "version, extra",
    [
        ("1", {"username": "monitor"}),
        ("2c", {"auth_key": "authpass"}),
        ("2c", {"priv_protocol": "aes"}),
    ],
)
def test_usm_fields_rejected_for_community_versions(version, extra):
    with pytest.raises(ValidationError, match="only apply to SNMPv3"):
        TargetConfig(host="10.0.0.1", version=version, **extra)


def test_community_rejected_for_v3():
    with pytest.raises(ValidationError, match="does not use a community"):
        TargetConfig(host="10.0.0.1", version="3", username="monitor", community="public")


def test_mixed_credentials_in_file(tmp_path):
    path = _write(tmp_path, """
targets:
  - host: 10.0.0.1
    version: 2c
    community: public
    username: monitor
""")
    with pytest.raises(ConfigError, match=r"targets\[0\]"):
        load_targets(path)


def test_unknown_auth_protocol_rejected():
    with pytest.raises(ValidationError):
        TargetConfig(host="10.0.0.1", version="3", username="u", auth_protocol="rot13")


def test_non_positive_interval_rejected():
    with pytest.raises(ValidationError):
        TargetConfig(host="10.0.0.1", scan_interval=0)


def test_config_models_are_frozen():
    sensor = SensorConfig(oid="1.3.6.1.2.1.1.3.0", name="Uptime")
    with pytest.raises(ValidationError):
        sensor.name = "Other"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_targets(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_targets(_write(tmp_path, "targets: [unclosed"))


def test_top_level_must_be_mapping(tmp_path):
    with pytest.raises(ConfigError, match="mapping"):
        load_targets(_write(tmp_path, "- host: 10.0.0.1\n"))


def test_invalid_target_reports_index(tmp_path):
    path = _write(tmp_path, """
targets:
  - host: 10.0.0.1
  - port: 161
""")
    with pytest.raises(ConfigError, match=r"targets\[1\]"):
        load_targets(path)


def test_empty_file_has_no_targets(tmp_path):
    assert load_targets(_write(tmp_path, "")) == []


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("MQTT__HOST", raising=False)
    settings = Settings(_env_file=None)
    assert settings.mqtt.host == "localhost"
    assert settings.mqtt.topic_prefix == "snmp2mqtt"
    assert settings.homeassistant.discovery is True
    assert settings.reconnect_delay_seconds == 2.0
    assert settings.snmp_mock is False


def test_settings_nested_env(monkeypatch):
    monkeypatch.setenv("MQTT__HOST", "broker.local")
    monkeypatch.setenv("MQTT__PORT", "8883")
    monkeypatch.setenv("HOMEASSISTANT__DISCOVERY", "false")
    monkeypatch.setenv("SNMP_MOCK", "true")

    settings = Settings(_env_file=None)

    assert settings.mqtt.host == "broker.local"
    assert settings.mqtt.port == 8883
    assert settings.homeassistant.discovery is False
    assert settings.snmp_mock is True
