"""Decode engine: populate destination values from a parsed node tree.

Dispatches on ``(node kind, descriptor)``:

==========  =========================================================
Node        Accepted destinations
==========  =========================================================
STRING      any, str
INTEGER     any, sized int (range checked), float (float32 checked)
REAL        any, float (float32 checked)
BOOLEAN     any, bool
DATE        any, timestamp
DATA        any, bytes
ARRAY       any, sequence
DICT        any, map, record (unknown keys rejected when strict)
==========  =========================================================

Every other combination raises :class:`~plist_py.errors.TypeMismatchError`.
"""

from __future__ import annotations

import logging
import math
import struct
from typing import TYPE_CHECKING, Any

from plist_py.config import DEFAULT_CONFIG, DecoderConfig
from plist_py.errors import DecodeError, RangeError, TypeMismatchError, UnknownFieldError
from plist_py.schema.descriptor import (
    AnyDescriptor,
    Descriptor,
    MapDescriptor,
    OptionalDescriptor,
    PrimitiveDescriptor,
    RecordDescriptor,
    ScalarKind,
    SequenceDescriptor,
)
from plist_py.schema.resolver import ANY, resolve
from plist_py.types.node import Node, PlistKind

if TYPE_CHECKING:
    from plist_py.schema.resolver import TypeResolver

logger = logging.getLogger(__name__)

FLOAT32_MAX = struct.unpack(">f", b"\x7f\x7f\xff\xff")[0]
_FLOAT32 = struct.Struct(">f")

# Node kinds a scalar destination accepts
_SCALAR_SOURCES: dict[ScalarKind, frozenset[PlistKind]] = {
    ScalarKind.BOOL: frozenset({PlistKind.BOOLEAN}),
    ScalarKind.INT: frozenset({PlistKind.INTEGER}),
    ScalarKind.FLOAT: frozenset({PlistKind.INTEGER, PlistKind.REAL}),
    ScalarKind.STRING: frozenset({PlistKind.STRING}),
    ScalarKind.BYTES: frozenset({PlistKind.DATA}),
    ScalarKind.TIMESTAMP: frozenset({PlistKind.DATE}),
}


def format_path(segments: list[str | int]) -> str:
    """Render a path such as ``$.items[2].name`` from key/index segments."""
    parts = ["$"]
    for seg in segments:
        if isinstance(seg, int):
            parts.append(f"[{seg}]")
        elif seg.isidentifier():
            parts.append(f".{seg}")
        else:
            parts.append(f"[{seg!r}]")
    return "".join(parts)


def to_float32(value: float) -> float:
    """Round *value* to the nearest IEEE 754 single-precision float."""
    return _FLOAT32.unpack(_FLOAT32.pack(value))[0]


class DecodeEngine:
    """Recursive node-to-value decoder for a single call.

    Holds the current path for error messages, so an instance must not be
    shared between threads.

    :param strict: Reject dict keys with no matching record field.
    """

    def __init__(self, *, strict: bool = True) -> None:
        self._strict = strict
        self._path: list[str | int] = []

    def decode(self, node: Node, descriptor: Descriptor) -> Any:
        """Decode *node* into a new value described by *descriptor*.

        :raises TypeMismatchError: If a node kind does not fit its destination.
        :raises RangeError: If an integer overflows its destination width.
        :raises UnknownFieldError: If a strict record meets an unknown key.
        """
        self._path.clear()
        return self._decode(node, descriptor)

    @property
    def path(self) -> str:
        return format_path(self._path)

    def _mismatch(self, node: Node, descriptor: Descriptor) -> TypeMismatchError:
        return TypeMismatchError(node.kind, descriptor.name, path=self.path)

    def _decode(self, node: Node, descriptor: Descriptor) -> Any:
        match descriptor:
            case AnyDescriptor():
                return self._materialize(node)
            case PrimitiveDescriptor():
                return self._decode_scalar(node, descriptor)
            case OptionalDescriptor(inner=inner):
                return self._decode(node, inner)
            case SequenceDescriptor(element=element, container=container):
                if node.kind != PlistKind.ARRAY:
                    raise self._mismatch(node, descriptor)
                return container(self._decode_items(node.value, element))
            case MapDescriptor(value=value_descriptor):
                if node.kind != PlistKind.DICT:
                    raise self._mismatch(node, descriptor)
                return self._decode_map(node.value, value_descriptor)
            case RecordDescriptor():
                if node.kind != PlistKind.DICT:
                    raise self._mismatch(node, descriptor)
                return self._decode_record(node.value, descriptor)
        raise self._mismatch(node, descriptor)

    # -- dynamic ----------------------------------------------------------

    def _materialize(self, node: Node) -> Any:
        if node.kind == PlistKind.ARRAY:
            return self._decode_items(node.value, ANY)
        if node.kind == PlistKind.DICT:
            return self._decode_map(node.value, ANY)
        return node.value

    # -- scalars ----------------------------------------------------------

    def _decode_scalar(self, node: Node, descriptor: PrimitiveDescriptor) -> Any:
        if node.kind not in _SCALAR_SOURCES[descriptor.kind]:
            raise self._mismatch(node, descriptor)
        value = node.value
        match descriptor.kind:
            case ScalarKind.INT:
                width = descriptor.int_width
                if not width.minimum <= value <= width.maximum:
                    raise RangeError(value, descriptor.name, path=self.path)
                return value
            case ScalarKind.FLOAT:
                return self._decode_float(value, descriptor)
            case ScalarKind.STRING | ScalarKind.BYTES:
                if type(value) is descriptor.py_type:
                    return value
                try:
                    return descriptor.py_type(value)
                except (TypeError, ValueError) as exc:
                    msg = f"cannot construct {descriptor.name}: {exc}"
                    raise DecodeError(msg, path=self.path) from exc
            case _:
                return value

    def _decode_float(self, value: int | float, descriptor: PrimitiveDescriptor) -> float:
        result = float(value)
        if descriptor.float_width.bits == 32 and math.isfinite(result):
            if abs(result) > FLOAT32_MAX:
                raise RangeError(value, descriptor.name, path=self.path)
            result = to_float32(result)
        return result

    # -- containers -------------------------------------------------------

    def _decode_items(self, items: tuple[Node, ...], element: Descriptor) -> list[Any]:
        out = []
        path = self._path
        for index, child in enumerate(items):
            path.append(index)
            out.append(self._decode(child, element))
            path.pop()
        return out

    def _decode_map(self, pairs: tuple[tuple[str, Node], ...], value: Descriptor) -> dict[str, Any]:
        out = {}
        path = self._path
        for key, child in pairs:
            path.append(key)
            out[key] = self._decode(child, value)
            path.pop()
        return out

    def _decode_record(
        self, pairs: tuple[tuple[str, Node], ...], descriptor: RecordDescriptor
    ) -> Any:
        kwargs: dict[str, Any] = {}
        path = self._path
        for key, child in pairs:
            field = descriptor.by_key.get(key)
            if field is None:
                if self._strict:
                    raise UnknownFieldError(key, descriptor.name, path=self.path)
                logger.debug("Skipping unknown key %r for %s", key, descriptor.name)
                continue
            path.append(key)
            kwargs[field.attr] = self._decode(child, field.descriptor)
            path.pop()
        try:
            for field in descriptor.fields:
                if field.attr not in kwargs and not field.has_default:
                    kwargs[field.attr] = field.descriptor.zero()
            return descriptor.cls(**kwargs)
        except (TypeError, ValueError) as exc:
            msg = f"cannot construct {descriptor.name}: {exc}"
            raise DecodeError(msg, path=self.path) from exc


def decode_node(
    node: Node,
    descriptor: Descriptor,
    *,
    config: DecoderConfig = DEFAULT_CONFIG,
) -> Any:
    """Decode *node* into a new value described by *descriptor*.

    :param node: Root of a parsed document (or any subtree).
    :param descriptor: Resolved destination descriptor.
    :param config: Decoder configuration (strictness).
    :returns: The decoded value.
    """
    return DecodeEngine(strict=config.strict).decode(node, descriptor)


def decode_value(
    node: Node,
    dest_type: object = Any,
    *,
    config: DecoderConfig = DEFAULT_CONFIG,
    resolver: TypeResolver | None = None,
) -> Any:
    """Resolve *dest_type* and decode *node* into it.

    :param node: Root of a parsed document.
    :param dest_type: Destination type hint (default: dynamic ``Any``).
    :param config: Decoder configuration.
    :param resolver: Resolver to use instead of the process-wide one.
    :returns: The decoded value.
    """
    descriptor = resolver.resolve(dest_type) if resolver is not None else resolve(dest_type)
    return decode_node(node, descriptor, config=config)
