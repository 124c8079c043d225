"""Root conftest — shared fixtures for all tests."""
from __future__ import annotations

from typing import Any

import pytest

from snmp2mqtt.core.config import SensorConfig, TargetConfig


def make_target(**overrides: Any) -> TargetConfig:
    """TargetConfig with three sensors unless ``sensors`` is given."""
    data: dict[str, Any] = {
        "host": "10.0.0.1",
        "version": "2c",
        "sensors": [
            {"oid": "1.3.6.1.2.1.1.5.0", "name": "System name"},
            {"oid": "1.3.6.1.2.1.1.3.0", "name": "Uptime"},
            {"oid": "1.3.6.1.2.1.31.1.1.1.6.1", "name": "Port 1 in octets"},
        ],
    }
    data.update(overrides)
    return TargetConfig.model_validate(data)


@pytest.fixture
def target() -> TargetConfig:
    """Default v2c target with three sensors."""
    return make_target()


@pytest.fixture
def sensor() -> SensorConfig:
    return SensorConfig(oid="1.3.6.1.2.1.1.5.0", name="System name")
