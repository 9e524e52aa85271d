"""JSON serializer backed by orjson."""

from __future__ import annotations

import base64
import logging
from typing import Any

import orjson

logger = logging.getLogger(__name__)


def json_default(obj: object) -> object:
    """Default handler for plist values orjson cannot encode natively.

    Handles ``bytes``, ``bytearray`` and ``memoryview`` → base64 text,
    matching the body of a plist ``<data>`` element. Dataclass records,
    ``datetime`` and the other plist scalar types are encoded by orjson
    itself.

    :param obj: The object to convert.
    :returns: A JSON-serializable representation.
    :raises TypeError: If *obj* is not a recognised type.
    """
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(obj).decode("ascii")
    msg = f"Cannot serialize {type(obj).__name__}"
    logger.warning("serialize failed: %s", msg)
    raise TypeError(msg)


class JsonSerializer:
    """JSON serializer using orjson.

    Timestamps are written as RFC 3339 strings with a ``Z`` suffix and
    data blobs as base64 strings. JSON has no binary or date type, so
    :meth:`decode` returns both as plain strings.

    :param pretty: Indent output with 2 spaces.
    :param sort_keys: Sort dict keys alphabetically.
    """

    def __init__(
        self,
        *,
        pretty: bool = False,
        sort_keys: bool = False,
    ) -> None:
        self._options = orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC
        if pretty:
            self._options |= orjson.OPT_INDENT_2
        if sort_keys:
            self._options |= orjson.OPT_SORT_KEYS

    def encode(self, value: Any) -> bytes:
        """Encode a decoded plist value to JSON bytes."""
        return orjson.dumps(value, default=json_default, option=self._options)

    def decode(self, raw: bytes) -> Any:
        """Decode JSON bytes to plain Python values."""
        return orjson.loads(raw)

    @property
    def content_type(self) -> str:
        """MIME content type for JSON."""
        return "application/json"
