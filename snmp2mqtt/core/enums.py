"""
Enumeration definitions for the application.

All enums are defined here to maintain consistency and type safety.
"""
from enum import Enum


class SnmpVersion(str, Enum):
    """
    SNMP protocol version as written in the targets file.

    V3 is the secured version (per-user auth/privacy); V1 and V2C use a
    shared community string.
    """

    V1 = "1"
    V2C = "2c"
    V3 = "3"

    @property
    def mp_model(self) -> int:
        """pysnmp message processing model for community-based versions."""
        return {"1": 0, "2c": 1, "3": 3}[self.value]


class SecurityLevel(str, Enum):
    """USM security level, derived from which keys are configured."""

    NO_AUTH_NO_PRIV = "noAuthNoPriv"
    AUTH_NO_PRIV = "authNoPriv"
    AUTH_PRIV = "authPriv"


class AuthProtocol(str, Enum):
    """SNMPv3 authentication algorithms."""

    MD5 = "md5"
    SHA = "sha"
    SHA224 = "sha224"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"


class PrivProtocol(str, Enum):
    """SNMPv3 privacy algorithms."""

    DES = "des"
    AES = "aes"
    AES256B = "aes256b"
    AES256R = "aes256r"


class ValueType(str, Enum):
    """
    SNMP varbind value types.

    Only COUNTER64 and OCTET_STRING get special treatment when decoding;
    every other type is passed through as-is.
    """

    INTEGER = "Integer"
    OCTET_STRING = "OctetString"
    NULL = "Null"
    OBJECT_IDENTIFIER = "ObjectIdentifier"
    IP_ADDRESS = "IpAddress"
    COUNTER32 = "Counter32"
    GAUGE32 = "Gauge32"
    TIME_TICKS = "TimeTicks"
    OPAQUE = "Opaque"
    COUNTER64 = "Counter64"


class SessionState(str, Enum):
    """Connection lifecycle of a polling session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    ACTIVE = "active"
    FETCHING = "fetching"
