"""JSON serialization of cached values."""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
from datetime import date, datetime, time
from typing import Any


def _default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"cannot serialize value of type {type(value).__name__}")


class JsonSerializer:
    """Serializes values to compact UTF-8 JSON and back.

    Dataclasses become objects, bytes become base64 strings and dates
    become ISO 8601 strings.
    """

    def serialize(self, value: Any) -> bytes:
        """Encode ``value`` as JSON bytes; raise TypeError if it cannot be."""
        return json.dumps(value, default=_default, separators=(",", ":")).encode("utf-8")

    def deserialize(self, data: bytes | str) -> Any:
        """Decode JSON bytes; raise ValueError if they are not valid JSON."""
        return json.loads(data)