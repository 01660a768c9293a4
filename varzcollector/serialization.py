"""
JSON codec for everything the collector reads and writes.

Bus messages and status bodies must decode to JSON objects; backend payloads
(series batches, CF metrics bodies, pings) are encoded with orjson. Tag
mappings can carry non-string keys, which are written as strings.
"""

from typing import Any

import orjson

from .type_aliases import JsonDict

_ENCODE_OPTIONS = orjson.OPT_NON_STR_KEYS


def _default(obj: Any) -> Any:
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def dumps(payload: Any) -> bytes:
    return orjson.dumps(payload, default=_default, option=_ENCODE_OPTIONS)


def loads_object(data: bytes | str, source: str = "message") -> JsonDict:
    """
    Decode a body that must hold a JSON object.

    Raises ValueError for malformed JSON (orjson.JSONDecodeError), for bytes
    that are not UTF-8, and for any top-level value other than an object.
    """
    decoded = orjson.loads(data)
    if not isinstance(decoded, dict):
        raise ValueError(f"{source} is not a JSON object: {type(decoded).__name__}")
    return decoded


def decode_text(raw: bytes, charset: str | None = None) -> str:
    """Strictly decode an HTTP body; UnicodeDecodeError/LookupError propagate."""
    return raw.decode(charset or "utf-8")
