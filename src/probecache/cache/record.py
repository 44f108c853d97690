"""Cache record data model and its on-disk document format.

A cache file is a small YAML mapping with exactly two fields:

    instance_alive: true
    data: aGVsbG8=

``data`` is the payload in standard base64 so that arbitrary bytes survive a
text document. Freshness is never stored in the document; it comes from the
file's mtime.

Public API:
    CacheRecord: Immutable record returned to callers
    dump_record: CacheRecord -> document bytes
    load_record: document bytes -> CacheRecord
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any

import yaml

from probecache.exceptions import CacheDecodeError, CacheSerializeError

ALIVE_FIELD = "instance_alive"
DATA_FIELD = "data"


@dataclass(frozen=True)
class CacheRecord:
    """Last known output of an instance probe.

    Attributes:
        alive: True iff the last attempt to obtain data (from the cache file or
            from the exporter) succeeded. This, not the presence of a cache
            file, is the liveness signal of the probed instance.
        payload: Opaque bytes from the last successful fetch. Meaningless
            when ``alive`` is False; callers must ignore it then.
    """

    alive: bool
    payload: bytes = b""

    @classmethod
    def dead(cls) -> "CacheRecord":
        """Record for "instance state unknown"."""
        return cls(alive=False, payload=b"")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the document mapping (payload base64-encoded)."""
        return {
            ALIVE_FIELD: self.alive,
            DATA_FIELD: base64.b64encode(self.payload).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheRecord":
        """Create from a document mapping.

        Raises:
            CacheDecodeError: If fields are missing, mistyped, or ``data`` is not base64
        """
        alive = data.get(ALIVE_FIELD)
        encoded = data.get(DATA_FIELD)
        if not isinstance(alive, bool):
            raise CacheDecodeError(f"'{ALIVE_FIELD}' must be a boolean, got {alive!r}")
        if not isinstance(encoded, str):
            raise CacheDecodeError(f"'{DATA_FIELD}' must be a string, got {type(encoded).__name__}")

        try:
            payload = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CacheDecodeError(f"Can't decode cache data: {e}") from e

        return cls(alive=alive, payload=payload)


def dump_record(record: CacheRecord) -> bytes:
    """Serialize a record to YAML document bytes.

    Raises:
        CacheSerializeError: If the record cannot be serialized
    """
    try:
        if not isinstance(record.payload, bytes):
            raise TypeError(f"payload must be bytes, got {type(record.payload).__name__}")
        text = yaml.safe_dump(record.to_dict(), default_flow_style=False, sort_keys=False)
    except (TypeError, yaml.YAMLError) as e:
        raise CacheSerializeError(f"Can't serialize cache: {e}") from e
    return text.encode("utf-8")


def load_record(raw: bytes) -> CacheRecord:
    """Parse YAML document bytes into a record.

    A truncated or torn document fails here rather than producing a record.

    Raises:
        CacheDecodeError: If the document is malformed
    """
    try:
        data = yaml.safe_load(raw.decode("utf-8"))
    except (UnicodeDecodeError, yaml.YAMLError) as e:
        raise CacheDecodeError(f"Can't parse cache: {e}") from e

    if not isinstance(data, dict):
        raise CacheDecodeError(f"Cache document must be a mapping, got {type(data).__name__}")

    return CacheRecord.from_dict(data)


__all__ = ["CacheRecord", "dump_record", "load_record"]
