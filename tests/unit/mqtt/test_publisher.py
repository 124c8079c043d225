"""Tests for MqttPublisher against a fake aiomqtt client."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest
from aiomqtt import MqttError

from snmp2mqtt.core.config import MqttConfig
from snmp2mqtt.mqtt.publisher import MqttPublisher


class FakeClient:
    def __init__(self, broker, hostname, kwargs):
        self.broker = broker
        self.hostname = hostname
        self.kwargs = kwargs
        self.publish = AsyncMock()

    async def __aenter__(self):
        if self.broker.connect_failures > 0:
            self.broker.connect_failures -= 1
            raise MqttError("Connection refused")
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeBroker:
    """Stands in for the aiomqtt Client class; records every client made."""

    def __init__(self):
        self.clients: list[FakeClient] = []
        self.connect_failures = 0

    def __call__(self, hostname, **kwargs):
        client = FakeClient(self, hostname, kwargs)
        self.clients.append(client)
        return client


@pytest.fixture
def broker():
    fake = FakeBroker()
    with patch("snmp2mqtt.mqtt.publisher.Client", fake):
        yield fake


async def wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def _config(**overrides):
    return MqttConfig(host="broker.local", reconnect_interval=0.01, **overrides)


@pytest.mark.asyncio
async def test_publish_while_disconnected_is_dropped(broker):
    publisher = MqttPublisher(_config())
    assert await publisher.publish("snmp2mqtt/x/y/value", "1") is False
    assert broker.clients == []


@pytest.mark.asyncio
async def test_client_configured_with_last_will(broker):
    publisher = MqttPublisher(_config(port=1884, username="snmp", password="secret", qos=1))
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))
    await wait_until(lambda: publisher.connected)
    stop.set()
    await task

    client = broker.clients[0]
    assert client.hostname == "broker.local"
    assert client.kwargs["port"] == 1884
    assert client.kwargs["username"] == "snmp"
    assert client.kwargs["password"] == "secret"
    assert client.kwargs["identifier"] == "snmp2mqtt"
    will = client.kwargs["will"]
    assert (will.topic, will.payload, will.qos, will.retain) == ("snmp2mqtt/status", "offline", 1, True)


@pytest.mark.asyncio
async def test_online_on_connect_offline_on_stop(broker):
    publisher = MqttPublisher(_config())
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))
    await wait_until(lambda: publisher.connected)

    assert await publisher.publish("snmp2mqtt/10_0_0_1/uptime/value", "42") is True
    stop.set()
    await task

    assert broker.clients[0].publish.await_args_list == [
        call("snmp2mqtt/status", "online", qos=0, retain=True),
        call("snmp2mqtt/10_0_0_1/uptime/value", "42", qos=0, retain=False),
        call("snmp2mqtt/status", "offline", qos=0, retain=True),
    ]
    assert not publisher.connected


@pytest.mark.asyncio
async def test_dict_payload_json_encoded(broker):
    publisher = MqttPublisher(_config())
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))
    await wait_until(lambda: publisher.connected)

    await publisher.publish("homeassistant/sensor/snmp2mqtt/uptime/config", {"name": "Uptime"}, retain=True)
    stop.set()
    await task

    assert call(
        "homeassistant/sensor/snmp2mqtt/uptime/config", '{"name": "Uptime"}', qos=0, retain=True,
    ) in broker.clients[0].publish.await_args_list


@pytest.mark.asyncio
async def test_connect_hooks_run_on_every_connect(broker):
    publisher = MqttPublisher(_config())
    hook = AsyncMock()
    publisher.add_connect_hook(hook)
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))
    await wait_until(lambda: publisher.connected)

    publisher._connection_lost.set()
    await wait_until(lambda: len(broker.clients) == 2 and publisher.connected)
    stop.set()
    await task

    assert hook.await_count == 2


@pytest.mark.asyncio
async def test_retries_after_connect_failure(broker):
    broker.connect_failures = 2
    publisher = MqttPublisher(_config())
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))

    await wait_until(lambda: publisher.connected)
    stop.set()
    await task

    assert len(broker.clients) == 3


@pytest.mark.asyncio
async def test_publish_failure_triggers_reconnect(broker):
    publisher = MqttPublisher(_config())
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))
    await wait_until(lambda: publisher.connected)

    broker.clients[0].publish.side_effect = MqttError("Disconnected")
    assert await publisher.publish("snmp2mqtt/10_0_0_1/uptime/value", "42") is False

    await wait_until(lambda: len(broker.clients) == 2 and publisher.connected)
    stop.set()
    await task

    assert broker.clients[1].publish.await_args_list[0] == call(
        "snmp2mqtt/status", "online", qos=0, retain=True,
    )


@pytest.mark.asyncio
async def test_stop_while_waiting_to_reconnect(broker):
    broker.connect_failures = 1000
    publisher = MqttPublisher(MqttConfig(reconnect_interval=30))
    stop = asyncio.Event()
    task = asyncio.create_task(publisher.run(stop))
    await wait_until(lambda: len(broker.clients) == 1)

    stop.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert not publisher.connected
