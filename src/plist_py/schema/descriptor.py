"""Destination descriptors.

A descriptor is the resolved, immutable description of a destination
type. The decode engine dispatches on the descriptor class only; it never
inspects Python type hints itself.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from plist_py.types.numeric import FieldTag, FloatWidth, IntegerWidth

ZERO_TIMESTAMP = datetime.datetime(1, 1, 1, tzinfo=datetime.UTC)
"""Value given to timestamp fields a document leaves unset."""


class ScalarKind(IntEnum):
    """Primitive destination kinds."""

    BOOL = 0
    INT = 1
    FLOAT = 2
    STRING = 3
    BYTES = 4
    TIMESTAMP = 5


class Descriptor:
    """Base class of the closed descriptor set."""

    __slots__ = ()

    @property
    def name(self) -> str:
        """Human-readable destination name used in error messages."""
        raise NotImplementedError

    def zero(self) -> Any:
        """Value for a record field the document does not set."""
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class AnyDescriptor(Descriptor):
    """Dynamic destination; the node kind decides the Python type."""

    @property
    def name(self) -> str:
        return "any"

    def zero(self) -> Any:
        return None


@dataclass(frozen=True, slots=True)
class PrimitiveDescriptor(Descriptor):
    """Scalar destination.

    ``py_type`` is the concrete class to construct (``str`` subclasses and
    ``bytes`` subclasses are preserved). ``int_width`` is set only for
    ``INT``, ``float_width`` only for ``FLOAT``.
    """

    kind: ScalarKind
    py_type: type
    int_width: IntegerWidth | None = None
    float_width: FloatWidth | None = None

    @property
    def name(self) -> str:
        if self.int_width is not None:
            return self.int_width.name
        if self.float_width is not None:
            return self.float_width.name
        if self.kind == ScalarKind.TIMESTAMP:
            return "timestamp"
        return self.py_type.__name__

    def zero(self) -> Any:
        if self.kind == ScalarKind.TIMESTAMP:
            return ZERO_TIMESTAMP
        return self.py_type()


@dataclass(frozen=True, slots=True)
class SequenceDescriptor(Descriptor):
    """Homogeneous sequence destination, built as ``container``."""

    element: Descriptor
    container: type = list

    @property
    def name(self) -> str:
        return f"{self.container.__name__}[{self.element.name}]"

    def zero(self) -> Any:
        return self.container()


@dataclass(frozen=True, slots=True)
class MapDescriptor(Descriptor):
    """String-keyed mapping destination."""

    value: Descriptor

    @property
    def name(self) -> str:
        return f"dict[str, {self.value.name}]"

    def zero(self) -> Any:
        return {}


@dataclass(frozen=True, slots=True)
class OptionalDescriptor(Descriptor):
    """``T | None`` destination; unset fields default to ``None``."""

    inner: Descriptor

    @property
    def name(self) -> str:
        return f"{self.inner.name} | None"

    def zero(self) -> Any:
        return None


@dataclass(frozen=True, slots=True)
class RecordField:
    """A dataclass field bound to a plist key."""

    attr: str
    """Attribute name on the dataclass."""

    tag: FieldTag
    """Parsed ``key[,options]`` tag; ``tag.key`` is the plist key."""

    descriptor: Descriptor
    has_default: bool = False

    @property
    def key(self) -> str:
        return self.tag.key


@dataclass(eq=False, slots=True)
class RecordDescriptor(Descriptor):
    """Dataclass destination.

    Created empty and completed by the resolver before it is published, so
    self-referential dataclasses can point back at their own descriptor.
    Treat as immutable once returned from a resolver.
    """

    cls: type
    fields: tuple[RecordField, ...] = ()
    by_key: Mapping[str, RecordField] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.cls.__qualname__

    def zero(self) -> Any:
        kwargs = {f.attr: f.descriptor.zero() for f in self.fields if not f.has_default}
        return self.cls(**kwargs)

    def __repr__(self) -> str:
        return f"RecordDescriptor({self.name}, keys={list(self.by_key)})"
