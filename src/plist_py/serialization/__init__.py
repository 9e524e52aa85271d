"""External format serialization (JSON, etc.) for decoded plist values.

This module provides a pluggable serialization API for exporting values
produced by the decoder to other interchange formats.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

__all__ = ["Serializer", "get_serializer", "serialize"]


@runtime_checkable
class Serializer(Protocol):
    """Interface for format-specific serialization backends."""

    def encode(self, value: Any) -> bytes:
        """Encode a decoded plist value to the target format."""
        ...

    def decode(self, raw: bytes) -> Any:
        """Decode bytes in the target format back to plain Python values."""
        ...

    @property
    def content_type(self) -> str:
        """MIME type for the output format (e.g. 'application/json')."""
        ...


def get_serializer(format: str = "json", **kwargs: Any) -> Serializer:
    """Get a serializer instance for the given format.

    Args:
        format: Output format. Currently supported: ``"json"``.
        **kwargs: Format-specific options passed to the serializer constructor.

    Returns:
        A Serializer instance.

    Raises:
        ValueError: If the format is not supported.
    """
    if format == "json":
        from plist_py.serialization.json import JsonSerializer

        return JsonSerializer(**kwargs)
    msg = f"Unsupported serialization format: {format}"
    raise ValueError(msg)


def serialize(value: Any, format: str = "json", **kwargs: Any) -> bytes:
    """Serialize a decoded plist value to the specified format.

    Args:
        value: Dynamic value, record instance, or any mix of the two.
        format: Output format (default ``"json"``).
        **kwargs: Format-specific options.

    Returns:
        Serialized bytes.
    """
    return get_serializer(format, **kwargs).encode(value)
