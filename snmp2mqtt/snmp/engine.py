"""
SNMP Engine — pysnmp asyncio wrapper.

One :class:`SnmpSession` is the connection handle for one device: it owns
its own pysnmp ``SnmpEngine`` and UDP transport, performs batched GETs and
notifies close callbacks when it goes away.

- AsyncSnmpEngine.open_session() — build credentials + transport for a target
- SnmpSession.get()              — one GET for a list of OIDs, per-OID results
- SnmpSession.close()            — release the transport, fire close callbacks

NOTE: pysnmp imports are deferred to the methods that need them so that mock
mode (SNMP_MOCK=true) works without touching pysnmp.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from snmp2mqtt.core.enums import AuthProtocol, PrivProtocol, SecurityLevel, SnmpVersion, ValueType

logger = logging.getLogger(__name__)


class SnmpError(Exception):
    """Base SNMP error."""


class SnmpTimeoutError(SnmpError):
    """SNMP request timed out after all retries."""


class SnmpNoSuchObjectError(SnmpError):
    """Requested OID does not exist on the device."""

    def __init__(self, oid: str, kind: str = "NoSuchObject") -> None:
        super().__init__(f"{kind}: {oid}")
        self.oid = oid
        self.kind = kind


class SnmpSessionClosedError(SnmpError):
    """The session was closed; a new one has to be opened."""


# pysnmp hlapi attribute names (current name first), resolved lazily
_AUTH_PROTOCOLS = {
    AuthProtocol.MD5: ("USM_AUTH_HMAC96_MD5", "usmHMACMD5AuthProtocol"),
    AuthProtocol.SHA: ("USM_AUTH_HMAC96_SHA", "usmHMACSHAAuthProtocol"),
    AuthProtocol.SHA224: ("USM_AUTH_HMAC128_SHA224", "usmHMAC128SHA224AuthProtocol"),
    AuthProtocol.SHA256: ("USM_AUTH_HMAC192_SHA256", "usmHMAC192SHA256AuthProtocol"),
    AuthProtocol.SHA384: ("USM_AUTH_HMAC256_SHA384", "usmHMAC256SHA384AuthProtocol"),
    AuthProtocol.SHA512: ("USM_AUTH_HMAC384_SHA512", "usmHMAC384SHA512AuthProtocol"),
}

_PRIV_PROTOCOLS = {
    PrivProtocol.DES: ("USM_PRIV_CBC56_DES", "usmDESPrivProtocol"),
    PrivProtocol.AES: ("USM_PRIV_CFB128_AES", "usmAesCfb128Protocol"),
    PrivProtocol.AES256B: ("USM_PRIV_CFB256_AES_BLUMENTHAL", "usmAesBlumenthalCfb256Protocol"),
    PrivProtocol.AES256R: ("USM_PRIV_CFB256_AES", "usmAesCfb256Protocol"),
}

_TYPES_BY_CLASS = {
    "Integer": ValueType.INTEGER,
    "Integer32": ValueType.INTEGER,
    "OctetString": ValueType.OCTET_STRING,
    "Bits": ValueType.OCTET_STRING,
    "Null": ValueType.NULL,
    "ObjectIdentifier": ValueType.OBJECT_IDENTIFIER,
    "ObjectName": ValueType.OBJECT_IDENTIFIER,
    "IpAddress": ValueType.IP_ADDRESS,
    "Counter32": ValueType.COUNTER32,
    "Gauge32": ValueType.GAUGE32,
    "Unsigned32": ValueType.GAUGE32,
    "TimeTicks": ValueType.TIME_TICKS,
    "Opaque": ValueType.OPAQUE,
    "Counter64": ValueType.COUNTER64,
}

_NUMERIC_TYPES = frozenset({
    ValueType.INTEGER,
    ValueType.COUNTER32,
    ValueType.GAUGE32,
    ValueType.TIME_TICKS,
    ValueType.COUNTER64,
})


def security_level(auth_key: str | None, priv_key: str | None) -> SecurityLevel:
    """Derive the USM security level from the keys that are present."""
    if auth_key and priv_key:
        return SecurityLevel.AUTH_PRIV
    if auth_key:
        return SecurityLevel.AUTH_NO_PRIV
    return SecurityLevel.NO_AUTH_NO_PRIV


def resolve_protocol(module: Any, names: tuple[str, ...]) -> Any:
    """Look up a USM protocol constant on the pysnmp hlapi module."""
    for name in names:
        if hasattr(module, name):
            return getattr(module, name)
    raise SnmpError(f"pysnmp does not provide {names[0]}")


@dataclass
class UsmCredentials:
    """SNMPv3 user. Protocols and keys are only passed on when set."""

    username: str
    auth_protocol: AuthProtocol | None = None
    auth_key: str | None = None
    priv_protocol: PrivProtocol | None = None
    priv_key: str | None = None

    @property
    def level(self) -> SecurityLevel:
        return security_level(self.auth_key, self.priv_key)


@dataclass
class SnmpTarget:
    """Connection parameters for a single SNMP target."""

    host: str
    version: SnmpVersion = SnmpVersion.V1
    community: str = "public"
    user: UsmCredentials | None = None
    port: int = 161
    timeout: float = 5.0
    retries: int = 3


@dataclass
class VarBind:
    """One successfully fetched value, still in its raw form."""

    oid: str
    value: Any
    type: ValueType | None


def build_auth_data(target: SnmpTarget) -> Any:
    """
    Build pysnmp ``CommunityData`` / ``UsmUserData`` for the target.

    For v3 the security level follows from the keys: authPriv needs both,
    authNoPriv only the auth key, noAuthNoPriv neither.
    """
    from pysnmp.hlapi.v3arch import asyncio as hlapi

    if target.version is not SnmpVersion.V3:
        return hlapi.CommunityData(target.community, mpModel=target.version.mp_model)

    user = target.user
    if user is None:
        raise SnmpError(f"SNMPv3 target {target.host} has no user")

    kwargs: dict[str, Any] = {}
    level = user.level
    if level in (SecurityLevel.AUTH_NO_PRIV, SecurityLevel.AUTH_PRIV):
        kwargs["authKey"] = user.auth_key
        if user.auth_protocol:
            kwargs["authProtocol"] = resolve_protocol(hlapi, _AUTH_PROTOCOLS[user.auth_protocol])
    if level is SecurityLevel.AUTH_PRIV:
        kwargs["privKey"] = user.priv_key
        if user.priv_protocol:
            kwargs["privProtocol"] = resolve_protocol(hlapi, _PRIV_PROTOCOLS[user.priv_protocol])

    return hlapi.UsmUserData(user.username, **kwargs)


def _to_raw(val: Any) -> tuple[Any, ValueType | None]:
    """Convert a pysnmp value object into (plain python value, type)."""
    value_type = _TYPES_BY_CLASS.get(val.__class__.__name__)
    if value_type is None:
        # Subclassed textual conventions (DisplayString etc.) still have an
        # rfc1902 base class somewhere in the MRO
        for base in type(val).__mro__:
            value_type = _TYPES_BY_CLASS.get(base.__name__)
            if value_type is not None:
                break

    if value_type in _NUMERIC_TYPES:
        return int(val), value_type
    if value_type is ValueType.OCTET_STRING:
        return val.asOctets(), value_type
    return val.prettyPrint() if hasattr(val, "prettyPrint") else str(val), value_type


CloseCallback = Callable[[], None]


class SnmpSession:
    """
    Connection handle for one device.

    pysnmp speaks UDP, so "connected" means: this session's engine and
    transport are usable.  The session closes itself on socket-level
    errors and then notifies every registered close callback exactly once.
    """

    def __init__(self, target: SnmpTarget, engine: Any, auth_data: Any, transport: Any) -> None:
        self.target = target
        self._engine = engine
        self._auth_data = auth_data
        self._transport = transport
        self._close_callbacks: list[CloseCallback] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def add_close_callback(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    async def get(self, oids: list[str]) -> list[VarBind | SnmpNoSuchObjectError]:
        """
        SNMP GET for all ``oids`` in one request.

        Returns:
            One entry per requested OID, in request order: a VarBind, or an
            SnmpNoSuchObjectError for OIDs the agent does not have.

        Raises:
            SnmpTimeoutError: if request times out.
            SnmpSessionClosedError: if the session is already closed.
            SnmpError: on other SNMP or transport errors.
        """
        from pysnmp.error import PySnmpError
        from pysnmp.hlapi.v3arch.asyncio import ContextData, ObjectIdentity, ObjectType, get_cmd

        if self._closed:
            raise SnmpSessionClosedError(f"session to {self.target.host} is closed")

        object_types = [ObjectType(ObjectIdentity(oid)) for oid in oids]

        try:
            error_indication, error_status, error_index, var_binds = await get_cmd(
                self._engine,
                self._auth_data,
                self._transport,
                ContextData(),
                *object_types,
            )
        except OSError as e:
            logger.warning("Socket error talking to %s: %s", self.target.host, e)
            self.close()
            raise SnmpError(f"SNMP GET transport error: {self.target.host}: {e}") from e
        except PySnmpError as e:
            raise SnmpError(f"SNMP GET error: {self.target.host}: {e}") from e

        if error_indication:
            err_str = str(error_indication)
            if "timeout" in err_str.lower() or "request" in err_str.lower():
                raise SnmpTimeoutError(
                    f"SNMP GET timeout: {self.target.host} ({len(oids)} OIDs)"
                )
            raise SnmpError(f"SNMP GET error: {err_str}")

        if error_status:
            raise SnmpError(
                f"SNMP GET error status: {error_status.prettyPrint()} "
                f"at {var_binds[int(error_index) - 1][0] if error_index else '?'}"
            )

        results: list[VarBind | SnmpNoSuchObjectError] = []
        for oid, val in var_binds:
            oid_str = str(oid)

            val_class = val.__class__.__name__
            if val_class in ("NoSuchObject", "NoSuchInstance", "EndOfMibView"):
                results.append(SnmpNoSuchObjectError(oid_str, val_class))
                continue

            raw, value_type = _to_raw(val)
            results.append(VarBind(oid=oid_str, value=raw, type=value_type))

        return results

    def close(self) -> None:
        """Release the transport and notify close callbacks (idempotent)."""
        if self._closed:
            return
        self._closed = True
        try:
            self._engine.close_dispatcher()
        except Exception as e:  # noqa: BLE001
            logger.debug("close_dispatcher failed for %s: %s", self.target.host, e)

        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            callback()


class AsyncSnmpEngine:
    """
    Factory for :class:`SnmpSession` backed by pysnmp.

    Every session gets its own pysnmp SnmpEngine so that closing one
    device's transport never affects another.
    """

    async def open_session(self, target: SnmpTarget) -> SnmpSession:
        """
        Create credentials + UDP transport for ``target``.

        Raises:
            SnmpError: if the transport cannot be created (e.g. host
                does not resolve).
        """
        from pysnmp.error import PySnmpError
        from pysnmp.hlapi.v3arch.asyncio import SnmpEngine as PySnmpEngine
        from pysnmp.hlapi.v3arch.asyncio import UdpTransportTarget

        auth_data = build_auth_data(target)
        try:
            transport = await UdpTransportTarget.create(
                (target.host, target.port),
                timeout=target.timeout,
                retries=target.retries,
            )
        except (PySnmpError, OSError) as e:
            raise SnmpError(f"Cannot open transport to {target.host}:{target.port}: {e}") from e

        logger.debug(
            "Opened SNMP session to %s:%d (v%s, timeout=%.1fs, retries=%d)",
            target.host, target.port, target.version.value,
            target.timeout, target.retries,
        )
        return SnmpSession(target, PySnmpEngine(), auth_data, transport)
