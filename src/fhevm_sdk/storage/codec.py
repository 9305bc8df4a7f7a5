"""JSON serialization with tagged big integers and byte strings.

Plain JSON cannot tell a large integer apart from a float, and has no byte
type at all.  Values of those kinds are written as tagged strings:

- integers outside the IEEE-754 safe range -> ``"bigint::<digits>"``
- ``bytes`` / ``bytearray`` / ``memoryview`` -> ``"uint8array::1,2,3"``

Strings that merely look like a tag but do not parse are returned as-is.
"""

from __future__ import annotations

import json
from typing import Any

BIGINT_TAG = "bigint::"
BYTES_TAG = "uint8array::"

MAX_SAFE_INTEGER = 2**53 - 1


def _encode(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            return f"{BIGINT_TAG}{value}"
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BYTES_TAG + ",".join(str(b) for b in bytes(value))
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def _decode_tagged(text: str) -> Any:
    if text.startswith(BIGINT_TAG):
        digits = text[len(BIGINT_TAG):]
        body = digits[1:] if digits.startswith("-") else digits
        if body.isdigit() and body.isascii():
            return int(digits)
        return text
    if text.startswith(BYTES_TAG):
        body = text[len(BYTES_TAG):]
        if body == "":
            return b""
        parts = body.split(",")
        if not all(p.isdigit() and p.isascii() for p in parts):
            return text
        numbers = [int(p) for p in parts]
        if any(n > 255 for n in numbers):
            return text
        return bytes(numbers)
    return text


def _decode(value: Any) -> Any:
    if isinstance(value, str):
        return _decode_tagged(value)
    if isinstance(value, dict):
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(item) for item in value]
    return value


def serialize(value: Any) -> str:
    """Encode *value* to a JSON string, tagging big ints and bytes."""
    return json.dumps(_encode(value), separators=(",", ":"))


def deserialize(text: str) -> Any:
    """Inverse of :func:`serialize`.

    Raises
    ------
    ValueError
        If *text* is not valid JSON.
    """
    return _decode(json.loads(text))
