"""
Mock SNMP Engine.

Drop-in replacement for AsyncSnmpEngine that generates values internally
without sending any UDP packets. Used when SNMP_MOCK=true or ``--mock``.

Implements the same open_session() / get() / close() interface so the
polling sessions work unchanged.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from snmp2mqtt.core.enums import ValueType
from snmp2mqtt.core.util import md5
from snmp2mqtt.snmp.engine import SnmpNoSuchObjectError, SnmpSessionClosedError, SnmpTarget, VarBind

logger = logging.getLogger(__name__)

_SYS_DESCR = "1.3.6.1.2.1.1.1.0"
_SYS_UPTIME = "1.3.6.1.2.1.1.3.0"
_SYS_NAME = "1.3.6.1.2.1.1.5.0"
_IF_HC_IN_OCTETS = "1.3.6.1.2.1.31.1.1.1.6."
_IF_HC_OUT_OCTETS = "1.3.6.1.2.1.31.1.1.1.10."


def mock_varbind(host: str, oid: str, now: float | None = None) -> VarBind:
    """Deterministic value per host + OID; counters grow with time."""
    now = time.time() if now is None else now
    seed = int(md5(f"{host}-{oid}")[:8], 16)

    if oid == _SYS_DESCR:
        return VarBind(oid, f"Mock SNMP agent on {host}".encode(), ValueType.OCTET_STRING)
    if oid == _SYS_NAME:
        return VarBind(oid, host.encode(), ValueType.OCTET_STRING)
    if oid == _SYS_UPTIME:
        return VarBind(oid, int(now * 100) % 2**32, ValueType.TIME_TICKS)
    if oid.startswith((_IF_HC_IN_OCTETS, _IF_HC_OUT_OCTETS)):
        counter = (seed * 2**32 + int(now) * 125_000) % 2**64
        return VarBind(oid, counter.to_bytes(8, "big"), ValueType.COUNTER64)
    return VarBind(oid, seed % 100, ValueType.GAUGE32)


class MockSnmpSession:
    """Mock connection handle — same interface as SnmpSession."""

    def __init__(
        self,
        target: SnmpTarget,
        latency: float,
        missing_oids: frozenset[str] = frozenset(),
    ) -> None:
        self.target = target
        self._latency = latency
        self._missing_oids = missing_oids
        self._close_callbacks: list[Any] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def add_close_callback(self, callback: Any) -> None:
        self._close_callbacks.append(callback)

    async def get(self, oids: list[str]) -> list[VarBind | SnmpNoSuchObjectError]:
        """Mock SNMP GET — returns deterministic values per host + OID."""
        if self._closed:
            raise SnmpSessionClosedError(f"session to {self.target.host} is closed")
        await asyncio.sleep(self._latency)
        return [
            SnmpNoSuchObjectError(oid) if oid in self._missing_oids
            else mock_varbind(self.target.host, oid)
            for oid in oids
        ]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            callback()


class MockSnmpEngine:
    """
    Mock SNMP engine — same interface as AsyncSnmpEngine.

    Adds a tiny async sleep per GET to simulate network latency.
    """

    def __init__(self, latency: float = 0.005, missing_oids: frozenset[str] = frozenset()) -> None:
        self._latency = latency
        self._missing_oids = missing_oids
        logger.info("MockSnmpEngine initialized (no real SNMP traffic)")

    async def open_session(self, target: SnmpTarget) -> MockSnmpSession:
        return MockSnmpSession(target, self._latency, self._missing_oids)
