"""Error types raised while parsing and decoding property lists."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from plist_py.types.node import PlistKind


class PlistError(Exception):
    """Base exception for plist-py failures."""


class ParseError(PlistError, ValueError):
    """Malformed XML or binary plist document.

    The current document is abandoned; the decoder does not attempt to
    resynchronise on the next one.
    """

    def __init__(self, message: str, *, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)


class DecodeError(PlistError):
    """A well-formed document could not be decoded into the destination.

    ``path`` locates the failing node, e.g. ``$.items[2].name``.
    """

    def __init__(self, message: str, *, path: str = "$") -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class TypeMismatchError(DecodeError, TypeError):
    """Node kind is incompatible with the destination kind."""

    def __init__(self, node_kind: PlistKind, destination: str, *, path: str = "$") -> None:
        self.node_kind = node_kind
        self.destination = destination
        super().__init__(
            f"cannot decode plist {node_kind.name.lower()} into {destination}", path=path
        )


class RangeError(DecodeError, OverflowError):
    """Numeric value does not fit the destination width or signedness."""

    def __init__(self, value: int | float, destination: str, *, path: str = "$") -> None:
        self.value = value
        self.destination = destination
        super().__init__(f"value {value!r} overflows {destination}", path=path)


class UnknownFieldError(DecodeError):
    """Dict key has no matching field on a strict record destination."""

    def __init__(self, key: str, record: str, *, path: str = "$") -> None:
        self.key = key
        self.record = record
        super().__init__(f"unknown field {key!r} for {record}", path=path)


class ConfigError(PlistError, TypeError):
    """A destination type cannot be resolved into a descriptor.

    Raised for duplicate record keys and unsupported type hints.
    """


class EndOfInput(EOFError):
    """The byte source holds no further documents.

    Not a :class:`PlistError`; a decode loop stops on it.
    """

    def __init__(self, message: str = "no more plist documents") -> None:
        super().__init__(message)
