"""
Polling Session — one SNMP device, polled on a fixed interval.

Lifecycle::

    DISCONNECTED --start()--> CONNECTING --> ACTIVE <--> FETCHING
         ^                                      |
         +---------- session closed ------------+
         (fetch job removed, reconnect after reconnect_delay)

Every tick issues one GET for all of the target's sensor OIDs.  Results are
fanned out per sensor to the ``on_response`` / ``on_error`` subscribers:
a whole-batch failure gives every sensor the same error, a per-OID failure
or a failed decode only affects that sensor.
"""
from __future__ import annotations

import inspect
import logging
from functools import partial
from typing import Any, Callable

from snmp2mqtt.core.config import SensorConfig, TargetConfig
from snmp2mqtt.core.enums import SessionState, SnmpVersion
from snmp2mqtt.services.scheduler import SchedulerService
from snmp2mqtt.snmp.decoder import DecodedValue, DecodeError, decode
from snmp2mqtt.snmp.engine import SnmpError, SnmpSession, SnmpTarget, UsmCredentials

logger = logging.getLogger(__name__)

FETCH_RETRIES = 3
MAX_FETCH_TIMEOUT = 5.0
DEFAULT_RECONNECT_DELAY = 2.0

ResponseCallback = Callable[[DecodedValue, SensorConfig, TargetConfig], Any]
ErrorCallback = Callable[[Exception, SensorConfig, TargetConfig], Any]


def fetch_timeout(scan_interval: float) -> float:
    """Half the poll interval, capped at MAX_FETCH_TIMEOUT seconds."""
    return min(scan_interval / 2, MAX_FETCH_TIMEOUT)


def build_snmp_target(config: TargetConfig) -> SnmpTarget:
    """
    Version-specific connection parameters for a configured target.

    v1/v2c use the community string; v3 uses the configured user, whose
    security level is derived from which keys are present.  Retries are
    fixed at FETCH_RETRIES with the same timeout for every attempt.
    """
    user = None
    if config.version is SnmpVersion.V3:
        user = UsmCredentials(
            username=config.username or "",
            auth_protocol=config.auth_protocol,
            auth_key=config.auth_key,
            priv_protocol=config.priv_protocol,
            priv_key=config.priv_key,
        )

    return SnmpTarget(
        host=config.host,
        version=config.version,
        community=config.effective_community,
        user=user,
        port=config.port,
        timeout=fetch_timeout(config.scan_interval),
        retries=FETCH_RETRIES,
    )


class PollingSession:
    """
    Owns the connection to one target and drives its fetch cycle.

    ``start()`` must not be called twice without ``stop()`` in between.
    """

    def __init__(
        self,
        target: TargetConfig,
        engine: Any,
        scheduler: SchedulerService,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self.target = target
        self.state = SessionState.DISCONNECTED
        self._engine = engine
        self._scheduler = scheduler
        self._reconnect_delay = reconnect_delay

        self._session: SnmpSession | None = None
        self._stopped = False
        self._fetching = False
        self._response_callbacks: list[ResponseCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

        key = f"{target.host}:{target.port}:{id(self):x}"
        self._fetch_job_id = f"fetch:{key}"
        self._reconnect_job_id = f"reconnect:{key}"

    # ── Subscribers ──────────────────────────────────────────────

    def on_response(self, callback: ResponseCallback) -> None:
        """Register ``callback(value, sensor, target)``; may be async."""
        self._response_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        """Register ``callback(error, sensor, target)``; may be async."""
        self._error_callbacks.append(callback)

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Connect, schedule the fetch job and fetch once right away."""
        self._stopped = False
        await self._connect()

    def stop(self) -> None:
        """
        Cancel scheduled fetches and any pending reconnect.

        A fetch already in flight runs to completion; the connection is
        released once it finishes.  A stopped session never reconnects.
        """
        self._stopped = True
        self._scheduler.remove_job(self._fetch_job_id)
        self._scheduler.remove_job(self._reconnect_job_id)
        if self._fetching:
            # detached; the in-flight fetch closes it when done
            self._session = None
        else:
            self._release()
        logger.info("Target %s stopped", self.target.host)

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def _connect(self) -> None:
        if self._stopped:
            return

        self.state = SessionState.CONNECTING
        snmp_target = build_snmp_target(self.target)
        try:
            session = await self._engine.open_session(snmp_target)
        except SnmpError as e:
            logger.warning(
                "Target %s: connect failed (%s), retrying in %.1fs",
                self.target.host, e, self._reconnect_delay,
            )
            self.state = SessionState.DISCONNECTED
            self._schedule_reconnect()
            return

        if self._stopped:
            session.close()
            self.state = SessionState.DISCONNECTED
            return

        self._session = session
        session.add_close_callback(partial(self._on_close, session))
        self.state = SessionState.ACTIVE
        self._scheduler.add_interval_job(
            self._fetch_job_id,
            self._fetch,
            self.target.scan_interval,
            run_now=True,
        )
        logger.info(
            "Target %s connected (v%s, %d sensors, every %ss)",
            self.target.host, self.target.version.value,
            len(self.target.sensors), self.target.scan_interval,
        )

    def _on_close(self, session: SnmpSession) -> None:
        if session is not self._session:
            return

        self._session = None
        self._scheduler.remove_job(self._fetch_job_id)
        self.state = SessionState.DISCONNECTED
        if self._stopped:
            return

        logger.warning(
            "Target %s disconnected, reconnecting in %.1fs",
            self.target.host, self._reconnect_delay,
        )
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        self._scheduler.add_delayed_job(
            self._reconnect_job_id, self._connect, self._reconnect_delay,
        )

    def _release(self) -> None:
        session, self._session = self._session, None
        self.state = SessionState.DISCONNECTED
        if session is not None:
            session.close()

    # ── Fetch cycle ──────────────────────────────────────────────

    async def _fetch(self) -> None:
        session = self._session
        sensors = self.target.sensors
        if session is None or self._fetching or not sensors:
            return

        oids = [sensor.oid for sensor in sensors]
        logger.debug("Fetching %d sensors from %s...", len(oids), self.target.host)

        self._fetching = True
        self.state = SessionState.FETCHING
        try:
            try:
                results = await session.get(oids)
                if len(results) != len(sensors):
                    raise SnmpError(
                        f"expected {len(sensors)} varbinds from {self.target.host}, "
                        f"got {len(results)}"
                    )
            except SnmpError as e:
                for sensor in sensors:
                    await self._emit_error(e, sensor)
                return

            for sensor, result in zip(sensors, results):
                if isinstance(result, SnmpError):
                    await self._emit_error(result, sensor)
                    continue
                try:
                    value = decode(result.value, result.type, sensor.transform)
                except DecodeError as e:
                    await self._emit_error(e, sensor)
                    continue
                except Exception as e:
                    logger.exception(
                        "Target %s: decoding sensor '%s' failed",
                        self.target.host, sensor.name,
                    )
                    error = DecodeError(f"{type(e).__name__}: {e}")
                    error.__cause__ = e
                    await self._emit_error(error, sensor)
                    continue
                await self._emit_response(value, sensor)
        finally:
            self._fetching = False
            if session is not self._session:
                # closed, or detached by stop(), while in flight
                session.close()
            if self.state is SessionState.FETCHING:
                self.state = (
                    SessionState.ACTIVE if self._session is not None
                    else SessionState.DISCONNECTED
                )

    async def _emit_response(self, value: DecodedValue, sensor: SensorConfig) -> None:
        await self._emit(self._response_callbacks, "response", value, sensor)

    async def _emit_error(self, error: Exception, sensor: SensorConfig) -> None:
        await self._emit(self._error_callbacks, "error", error, sensor)

    async def _emit(self, callbacks: list, event: str, payload: Any, sensor: SensorConfig) -> None:
        for callback in list(callbacks):
            try:
                result = callback(payload, sensor, self.target)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Target %s: %s subscriber failed for sensor '%s'",
                    self.target.host, event, sensor.name,
                )
