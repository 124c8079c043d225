"""
Varbind value decoding.

Turns a raw value handed out by the engine into the scalar published for a
sensor, then applies the sensor's transform expression if it has one.
Nothing is cached: every fetch decodes from the raw value again.
"""
from __future__ import annotations

from typing import Any, Union

from snmp2mqtt.core.enums import ValueType
from snmp2mqtt.snmp.expression import ExpressionError, evaluate

# int is arbitrary precision, which Counter64 needs
DecodedValue = Union[str, int, float, bool]

_SCALARS = (str, int, float, bool)


class DecodeError(Exception):
    """A single sensor's value could not be decoded or transformed."""


def decode(
    raw_value: Any,
    value_type: ValueType | None,
    transform: str | None = None,
) -> DecodedValue:
    """
    Decode a raw varbind value according to its SNMP type.

    - Counter64: big-endian bytes (or an int) → exact non-negative int
    - OctetString: bytes → text
    - anything else: passed through unchanged

    Raises:
        DecodeError: raw value unusable for its type, transform failed, or
            transform returned something that is not a scalar.
    """
    value = _decode_raw(raw_value, value_type)

    if transform:
        try:
            value = evaluate(transform, value)
        except ExpressionError as e:
            raise DecodeError(str(e)) from e
        if not isinstance(value, _SCALARS):
            raise DecodeError(
                f"transform {transform!r} returned {type(value).__name__}, expected a scalar"
            )

    return value


def _decode_raw(raw_value: Any, value_type: ValueType | None) -> Any:
    if value_type is ValueType.COUNTER64:
        if isinstance(raw_value, (bytes, bytearray)):
            return int.from_bytes(raw_value, "big", signed=False)
        try:
            counter = int(raw_value)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"invalid Counter64 value {raw_value!r}") from e
        if counter < 0:
            raise DecodeError(f"negative Counter64 value {counter}")
        return counter

    if value_type is ValueType.OCTET_STRING:
        if isinstance(raw_value, (bytes, bytearray)):
            return bytes(raw_value).decode("utf-8", errors="replace")
        return str(raw_value)

    return raw_value
