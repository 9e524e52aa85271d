"""Sized numeric destination types and record field tags.

Python integers and floats have no fixed width, so destinations that need
one are spelled with :data:`typing.Annotated` markers::

    @dataclass
    class Header:
        band_size: UInt64 = plist_field("band-size", default=0)
        version: Int32 = plist_field("bundle-backingstore-version", default=0)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Annotated, Any

TAG_METADATA_KEY = "plist"
"""Key under which a dataclass field's plist tag is stored in ``field.metadata``."""

IGNORE_TAG = "-"


@dataclass(frozen=True, slots=True)
class IntegerWidth:
    """Width and signedness of an integer destination."""

    bits: int
    signed: bool

    def __post_init__(self) -> None:
        if self.bits not in (8, 16, 32, 64):
            msg = f"Integer width must be 8, 16, 32 or 64 bits, got {self.bits}"
            raise ValueError(msg)

    @property
    def minimum(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def maximum(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    @property
    def name(self) -> str:
        return f"{'int' if self.signed else 'uint'}{self.bits}"


@dataclass(frozen=True, slots=True)
class FloatWidth:
    """Width of a floating-point destination (32 or 64 bits)."""

    bits: int

    def __post_init__(self) -> None:
        if self.bits not in (32, 64):
            msg = f"Float width must be 32 or 64 bits, got {self.bits}"
            raise ValueError(msg)

    @property
    def name(self) -> str:
        return f"float{self.bits}"


Int8 = Annotated[int, IntegerWidth(8, signed=True)]
Int16 = Annotated[int, IntegerWidth(16, signed=True)]
Int32 = Annotated[int, IntegerWidth(32, signed=True)]
Int64 = Annotated[int, IntegerWidth(64, signed=True)]
UInt8 = Annotated[int, IntegerWidth(8, signed=False)]
UInt16 = Annotated[int, IntegerWidth(16, signed=False)]
UInt32 = Annotated[int, IntegerWidth(32, signed=False)]
UInt64 = Annotated[int, IntegerWidth(64, signed=False)]
Float32 = Annotated[float, FloatWidth(32)]
Float64 = Annotated[float, FloatWidth(64)]

DEFAULT_INT_WIDTH = IntegerWidth(64, signed=True)
"""Width applied to a bare ``int`` destination."""

DEFAULT_FLOAT_WIDTH = FloatWidth(64)


@dataclass(frozen=True, slots=True)
class FieldTag:
    """Parsed ``key[,options]`` tag of a record field."""

    key: str
    options: frozenset[str] = frozenset()
    ignored: bool = False

    @property
    def omitempty(self) -> bool:
        return "omitempty" in self.options


def parse_tag(tag: str | None, field_name: str) -> FieldTag:
    """Parse a field tag of the form ``key[,option...]``.

    A missing tag or an empty key part falls back to *field_name*;
    the tag ``"-"`` marks the field as ignored.

    :param tag: Raw tag string from the field metadata, or ``None``.
    :param field_name: Declared attribute name of the field.
    :returns: The parsed :class:`FieldTag`.
    """
    if tag is None:
        return FieldTag(key=field_name)
    if tag == IGNORE_TAG:
        return FieldTag(key=field_name, ignored=True)
    key, _, rest = tag.partition(",")
    options = frozenset(opt.strip() for opt in rest.split(",") if opt.strip())
    return FieldTag(key=key.strip() or field_name, options=options)


def plist_field(key: str, **kwargs: Any) -> Any:
    """Declare a dataclass field bound to plist key *key*.

    Extra keyword arguments (``default``, ``default_factory``, ...) are
    passed through to :func:`dataclasses.field`.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_METADATA_KEY] = key
    return dataclasses.field(metadata=metadata, **kwargs)
