"""Parsed plist document tree.

Both the XML and binary parsers produce :class:`Node` trees; the decode
engine consumes them. Nodes are immutable and never retained by decoded
values.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

APPLE_EPOCH = datetime.datetime(2001, 1, 1, tzinfo=datetime.UTC)
"""Reference date for plist timestamps (binary dates count seconds from here)."""

INTEGER_MIN = -(1 << 63)
INTEGER_MAX = (1 << 64) - 1
"""Integer payload bounds: signed 64-bit low end, unsigned 64-bit high end."""


class PlistKind(IntEnum):
    """Source value kinds a plist document can carry."""

    STRING = 0
    INTEGER = 1
    REAL = 2
    BOOLEAN = 3
    DATE = 4
    DATA = 5
    ARRAY = 6
    DICT = 7


@dataclass(frozen=True, slots=True)
class Node:
    """A single value in a parsed plist document.

    ``value`` depends on ``kind``:

    - ``STRING``: :class:`str`
    - ``INTEGER``: :class:`int` in ``[-2**63, 2**64 - 1]``
    - ``REAL``: :class:`float`
    - ``BOOLEAN``: :class:`bool`
    - ``DATE``: timezone-aware :class:`~datetime.datetime` in UTC
    - ``DATA``: :class:`bytes`
    - ``ARRAY``: ``tuple[Node, ...]`` in document order
    - ``DICT``: ``tuple[tuple[str, Node], ...]`` in document order
    """

    kind: PlistKind
    value: object

    @classmethod
    def string(cls, value: str) -> Node:
        if not isinstance(value, str):
            msg = f"String node requires str, got {type(value).__name__}"
            raise TypeError(msg)
        return cls(PlistKind.STRING, value)

    @classmethod
    def integer(cls, value: int) -> Node:
        if isinstance(value, bool) or not isinstance(value, int):
            msg = f"Integer node requires int, got {type(value).__name__}"
            raise TypeError(msg)
        if not INTEGER_MIN <= value <= INTEGER_MAX:
            msg = f"Integer node value out of 64-bit range, got {value}"
            raise ValueError(msg)
        return cls(PlistKind.INTEGER, value)

    @classmethod
    def real(cls, value: float) -> Node:
        return cls(PlistKind.REAL, float(value))

    @classmethod
    def boolean(cls, value: bool) -> Node:
        return cls(PlistKind.BOOLEAN, bool(value))

    @classmethod
    def date(cls, value: datetime.datetime) -> Node:
        """Build a date node; naive datetimes are taken to be UTC."""
        if not isinstance(value, datetime.datetime):
            msg = f"Date node requires datetime, got {type(value).__name__}"
            raise TypeError(msg)
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.UTC)
        return cls(PlistKind.DATE, value.astimezone(datetime.UTC))

    @classmethod
    def data(cls, value: bytes | bytearray | memoryview) -> Node:
        return cls(PlistKind.DATA, bytes(value))

    @classmethod
    def array(cls, items: Iterable[Node]) -> Node:
        return cls(PlistKind.ARRAY, tuple(items))

    @classmethod
    def dict(cls, items: Iterable[tuple[str, Node]]) -> Node:
        """Build a dict node from ``(key, node)`` pairs, keeping their order."""
        pairs = tuple(items)
        seen: set[str] = set()
        for key, _ in pairs:
            if key in seen:
                msg = f"Duplicate dict key {key!r}"
                raise ValueError(msg)
            seen.add(key)
        return cls(PlistKind.DICT, pairs)

    def children(self) -> Iterator[Node]:
        """Iterate over direct child nodes of an array or dict."""
        if self.kind == PlistKind.ARRAY:
            yield from self.value  # type: ignore[misc]
        elif self.kind == PlistKind.DICT:
            for _, child in self.value:  # type: ignore[attr-defined]
                yield child


def date_from_apple_seconds(seconds: float) -> datetime.datetime:
    """Convert seconds relative to :data:`APPLE_EPOCH` to a UTC datetime.

    :param seconds: Offset in seconds, possibly negative or fractional.
    :returns: Timezone-aware UTC :class:`~datetime.datetime`.
    :raises OverflowError: If the result is outside the datetime range.
    """
    return APPLE_EPOCH + datetime.timedelta(seconds=seconds)
