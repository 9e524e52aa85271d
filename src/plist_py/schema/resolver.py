"""Destination type resolution.

Turns a caller-supplied Python type (a type hint) into a
:class:`~plist_py.schema.descriptor.Descriptor`. Results are cached per
type; a resolver may be shared between threads.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
import threading
import types
import typing
from collections import abc
from typing import Annotated, Any, Union, get_args, get_origin

from plist_py.errors import ConfigError
from plist_py.schema.descriptor import (
    AnyDescriptor,
    Descriptor,
    MapDescriptor,
    OptionalDescriptor,
    PrimitiveDescriptor,
    RecordDescriptor,
    RecordField,
    ScalarKind,
    SequenceDescriptor,
)
from plist_py.types.numeric import (
    DEFAULT_FLOAT_WIDTH,
    DEFAULT_INT_WIDTH,
    TAG_METADATA_KEY,
    FloatWidth,
    IntegerWidth,
    parse_tag,
)

logger = logging.getLogger(__name__)

ANY = AnyDescriptor()

_SEQUENCE_ORIGINS = frozenset(
    {list, abc.Sequence, abc.MutableSequence, abc.Iterable, abc.Collection}
)
_MAP_ORIGINS = frozenset({dict, abc.Mapping, abc.MutableMapping})


class TypeResolver:
    """Memoizing resolver from type hints to descriptors.

    The cache only ever grows and its entries are immutable once
    published, so lookups of already-resolved types take no lock.
    """

    def __init__(self) -> None:
        self._cache: dict[object, Descriptor] = {}
        self._staged: dict[object, Descriptor] = {}
        self._pending: dict[type, RecordDescriptor] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._cache)

    def resolve(self, type_ref: object) -> Descriptor:
        """Resolve *type_ref* to a descriptor.

        :param type_ref: A type or type hint such as ``list[str]``,
            ``UInt8``, ``Any`` or a dataclass.
        :returns: The cached or newly built descriptor.
        :raises ConfigError: If the type is unsupported or a record maps
            two fields to the same plist key.
        """
        try:
            cached = self._cache.get(type_ref)
        except TypeError:
            cached = None
        if cached is not None:
            return cached
        with self._lock:
            try:
                return self._resolve_locked(type_ref)
            finally:
                self._staged.clear()

    def clear(self) -> None:
        """Drop all cached descriptors."""
        with self._lock:
            self._cache.clear()

    # -- construction (lock held) -----------------------------------------

    def _resolve_locked(self, type_ref: object) -> Descriptor:
        if isinstance(type_ref, type) and type_ref in self._pending:
            return self._pending[type_ref]
        try:
            found = self._cache.get(type_ref) or self._staged.get(type_ref)
            hashable = True
        except TypeError:
            # Unhashable hint (e.g. Annotated with list metadata); never cached
            found, hashable = None, False
        if found is not None:
            return found
        descriptor = self._build(type_ref)
        if not hashable:
            return descriptor
        if self._pending:
            # Refers to a record still under construction; publish with it
            self._staged[type_ref] = descriptor
        else:
            self._cache.update(self._staged)
            self._staged.clear()
            self._cache[type_ref] = descriptor
        return descriptor

    def _build(self, type_ref: object) -> Descriptor:
        if type_ref is Any or type_ref is object:
            return ANY

        origin = get_origin(type_ref)
        if origin is Annotated:
            return self._build_annotated(type_ref)
        if origin is Union or origin is types.UnionType:
            return self._build_optional(type_ref)
        if origin is not None:
            return self._build_generic(type_ref, origin, get_args(type_ref))

        if not isinstance(type_ref, type):
            msg = f"Unsupported destination type {type_ref!r}"
            raise ConfigError(msg)
        if dataclasses.is_dataclass(type_ref):
            return self._build_record(type_ref)
        return self._build_scalar(type_ref)

    def _build_scalar(self, cls: type) -> Descriptor:
        if cls is bool:
            return PrimitiveDescriptor(ScalarKind.BOOL, bool)
        if cls is int:
            return PrimitiveDescriptor(ScalarKind.INT, int, int_width=DEFAULT_INT_WIDTH)
        if cls is float:
            return PrimitiveDescriptor(ScalarKind.FLOAT, float, float_width=DEFAULT_FLOAT_WIDTH)
        if issubclass(cls, str):
            return PrimitiveDescriptor(ScalarKind.STRING, cls)
        if issubclass(cls, (bytes, bytearray)):
            return PrimitiveDescriptor(ScalarKind.BYTES, cls)
        if issubclass(cls, datetime.datetime):
            return PrimitiveDescriptor(ScalarKind.TIMESTAMP, datetime.datetime)
        if cls is list or cls is tuple:
            return SequenceDescriptor(ANY, container=cls)
        if cls is dict:
            return MapDescriptor(ANY)
        msg = f"Unsupported destination type {cls.__qualname__}"
        raise ConfigError(msg)

    def _build_annotated(self, type_ref: object) -> Descriptor:
        base, *metadata = get_args(type_ref)
        for meta in metadata:
            if isinstance(meta, IntegerWidth):
                if base is not int:
                    msg = f"{meta.name} marker requires int, got {base!r}"
                    raise ConfigError(msg)
                return PrimitiveDescriptor(ScalarKind.INT, int, int_width=meta)
            if isinstance(meta, FloatWidth):
                if base is not float:
                    msg = f"{meta.name} marker requires float, got {base!r}"
                    raise ConfigError(msg)
                return PrimitiveDescriptor(ScalarKind.FLOAT, float, float_width=meta)
        return self._resolve_locked(base)

    def _build_optional(self, type_ref: object) -> Descriptor:
        members = [arg for arg in get_args(type_ref) if arg is not type(None)]
        if len(members) != 1:
            msg = f"Only 'T | None' unions are supported, got {type_ref!r}"
            raise ConfigError(msg)
        return OptionalDescriptor(self._resolve_locked(members[0]))

    def _build_generic(self, type_ref: object, origin: object, args: tuple[Any, ...]) -> Descriptor:
        if origin in _SEQUENCE_ORIGINS:
            element = self._resolve_locked(args[0]) if args else ANY
            return SequenceDescriptor(element, container=list)
        if origin is tuple:
            if len(args) != 2 or args[1] is not Ellipsis:
                msg = f"Only homogeneous tuple[T, ...] destinations are supported, got {type_ref!r}"
                raise ConfigError(msg)
            return SequenceDescriptor(self._resolve_locked(args[0]), container=tuple)
        if origin in _MAP_ORIGINS:
            key_type, value_type = args if args else (str, Any)
            if key_type is not str:
                msg = f"Map destinations must be keyed by str, got {type_ref!r}"
                raise ConfigError(msg)
            return MapDescriptor(self._resolve_locked(value_type))
        msg = f"Unsupported destination type {type_ref!r}"
        raise ConfigError(msg)

    def _build_record(self, cls: type) -> RecordDescriptor:
        record = RecordDescriptor(cls)
        self._pending[cls] = record
        try:
            try:
                hints = typing.get_type_hints(cls, include_extras=True)
            except (NameError, TypeError) as exc:
                msg = f"Cannot resolve annotations of {cls.__qualname__}: {exc}"
                raise ConfigError(msg) from exc

            fields: list[RecordField] = []
            by_key: dict[str, RecordField] = {}
            for f in dataclasses.fields(cls):
                has_default = (
                    f.default is not dataclasses.MISSING
                    or f.default_factory is not dataclasses.MISSING
                )
                tag = parse_tag(f.metadata.get(TAG_METADATA_KEY), f.name)
                if tag.ignored or f.name.startswith("_") or not f.init:
                    if f.init and not has_default:
                        msg = f"Skipped field {cls.__qualname__}.{f.name} must declare a default"
                        raise ConfigError(msg)
                    continue
                if tag.key in by_key:
                    other = by_key[tag.key].attr
                    msg = (
                        f"Fields {cls.__qualname__}.{other} and {cls.__qualname__}.{f.name} "
                        f"both map to plist key {tag.key!r}"
                    )
                    logger.warning(msg)
                    raise ConfigError(msg)
                rf = RecordField(
                    attr=f.name,
                    tag=tag,
                    descriptor=self._resolve_locked(hints[f.name]),
                    has_default=has_default,
                )
                fields.append(rf)
                by_key[tag.key] = rf
            record.fields = tuple(fields)
            record.by_key = types.MappingProxyType(by_key)
        finally:
            del self._pending[cls]
        logger.debug("Resolved record %s with keys %s", cls.__qualname__, list(by_key))
        return record


_default_resolver = TypeResolver()


def default_resolver() -> TypeResolver:
    """Return the process-wide resolver used by :func:`resolve`."""
    return _default_resolver


def resolve(type_ref: object) -> Descriptor:
    """Resolve *type_ref* using the process-wide cached resolver."""
    return _default_resolver.resolve(type_ref)
