"""
MQTT publisher.

Keeps one aiomqtt connection to the broker open for the life of the
process, reconnecting on failure.  Messages published while the broker is
unreachable are dropped, not queued.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from aiomqtt import Client, MqttError, Will

from snmp2mqtt.core.config import MqttConfig
from snmp2mqtt.mqtt.topics import OFFLINE, ONLINE, Topics

logger = logging.getLogger(__name__)

ConnectHook = Callable[[], Awaitable[None]]


class MqttPublisher:
    """aiomqtt client with bridge status topic and last will."""

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.topics = Topics(config.topic_prefix)
        self._client: Client | None = None
        self._connection_lost = asyncio.Event()
        self._connect_hooks: list[ConnectHook] = []

    @property
    def connected(self) -> bool:
        return self._client is not None

    def add_connect_hook(self, hook: ConnectHook) -> None:
        """Run ``await hook()`` after every (re)connect, e.g. for discovery."""
        self._connect_hooks.append(hook)

    def _make_client(self) -> Client:
        return Client(
            self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            identifier=self.config.client_id,
            keepalive=self.config.keepalive,
            will=Will(self.topics.status_topic, OFFLINE, qos=self.config.qos, retain=True),
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        """Connect and stay connected until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                logger.info(
                    "Connecting to MQTT broker %s:%s",
                    self.config.host, self.config.port,
                )
                async with self._make_client() as client:
                    self._client = client
                    self._connection_lost.clear()
                    try:
                        await self._on_connected()
                        await self._wait_for_stop_or_loss(stop_event)
                        if stop_event.is_set():
                            await client.publish(
                                self.topics.status_topic, OFFLINE,
                                qos=self.config.qos, retain=True,
                            )
                    finally:
                        self._client = None
            except MqttError as exc:
                logger.warning(
                    "MQTT error %s; retrying in %.1fs",
                    exc, self.config.reconnect_interval,
                )

            if not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.config.reconnect_interval)
                except asyncio.TimeoutError:
                    continue

        logger.info("MQTT publisher stopped")

    async def _on_connected(self) -> None:
        logger.info("MQTT connected to %s:%s", self.config.host, self.config.port)
        await self.publish(self.topics.status_topic, ONLINE, retain=True)
        for hook in self._connect_hooks:
            await hook()

    async def _wait_for_stop_or_loss(self, stop_event: asyncio.Event) -> None:
        waiters = {
            asyncio.ensure_future(stop_event.wait()),
            asyncio.ensure_future(self._connection_lost.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def publish(self, topic: str, payload: Any, retain: bool = False) -> bool:
        """
        Publish one message. dicts/lists are JSON-encoded.

        Returns:
            True if handed to the broker connection, False if dropped.
        """
        client = self._client
        if client is None:
            logger.debug("MQTT not connected, dropping message for %s", topic)
            return False

        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload)

        try:
            await client.publish(topic, payload, qos=self.config.qos, retain=retain)
        except MqttError as exc:
            logger.warning("MQTT publish to %s failed: %s", topic, exc)
            self._connection_lost.set()
            return False
        return True
