"""
Blob encoding for records stored by the SQLite backend.

Layout: 1-byte format tag, 4-byte big-endian payload length, payload.
Format 1 payload is the UTF-8 JSON of the record's to_dict(). Decoding goes
through from_dict, which ignores keys it does not know and defaults optional
keys that are missing, so newer writers never break older readers.
"""
from __future__ import annotations

import json
import struct
from typing import Any, Protocol, TypeVar

from watchclub.errors import Internal

FORMAT_JSON_V1 = 1

_HEADER = struct.Struct(">BI")


class Record(Protocol):
    def to_dict(self) -> dict[str, Any]: ...


R = TypeVar("R")


def encode(record: Record) -> bytes:
    payload = json.dumps(record.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")
    return _HEADER.pack(FORMAT_JSON_V1, len(payload)) + payload


def decode(cls: type[R], blob: bytes) -> R:
    """Decode a blob written by encode() into cls. Raises Internal on a corrupt blob."""
    data = bytes(blob)
    if len(data) < _HEADER.size:
        raise Internal(f"corrupt {cls.__name__} record: truncated header")
    fmt, length = _HEADER.unpack_from(data)
    if fmt != FORMAT_JSON_V1:
        raise Internal(f"corrupt {cls.__name__} record: unknown format {fmt}")
    payload = data[_HEADER.size:]
    if len(payload) != length:
        raise Internal(
            f"corrupt {cls.__name__} record: expected {length} bytes, got {len(payload)}"
        )
    try:
        return cls.from_dict(json.loads(payload.decode("utf-8")))  # type: ignore[attr-defined]
    except (ValueError, KeyError, TypeError) as e:
        raise Internal(f"corrupt {cls.__name__} record: {e}") from e
