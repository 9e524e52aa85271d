"""Tests for the decode engine over hand-built node trees."""

from __future__ import annotations

import datetime
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import pytest

from plist_py.config import DecoderConfig
from plist_py.decoding.engine import (
    FLOAT32_MAX,
    DecodeEngine,
    decode_node,
    decode_value,
    format_path,
    to_float32,
)
from plist_py.errors import DecodeError, RangeError, TypeMismatchError, UnknownFieldError
from plist_py.schema.descriptor import ZERO_TIMESTAMP
from plist_py.schema.resolver import TypeResolver, resolve
from plist_py.types.node import Node, PlistKind
from plist_py.types.numeric import (
    Float32,
    Int8,
    Int16,
    Int32,
    Int64,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
    plist_field,
)

WHEN = datetime.datetime(2011, 5, 12, 1, 0, 0, tzinfo=datetime.UTC)


class Color(StrEnum):
    RED = "red"
    GREEN = "green"


def _dict(**items: Node) -> Node:
    return Node.dict(items.items())


@dataclass
class Inner:
    name: str = ""
    count: int = 0


@dataclass
class Outer:
    title: str = plist_field("Title", default="")
    inner: Inner = field(default_factory=Inner)
    tags: list[str] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)
    note: str | None = None


@dataclass
class Required:
    name: str
    flag: bool
    count: UInt8
    ratio: float
    blob: bytes
    when: datetime.datetime
    items: list[int]
    table: dict[str, str]
    anything: Any
    child: Inner
    maybe: Inner | None


@dataclass
class Tree:
    label: str = ""
    children: list[Tree] = field(default_factory=list)


class TestDynamicAny:
    def test_scalars_materialize_natively(self):
        cases = [
            (Node.string("foo"), "foo"),
            (Node.integer(0), 0),
            (Node.integer(1), 1),
            (Node.real(1.2), 1.2),
            (Node.boolean(True), True),
            (Node.date(WHEN), WHEN),
            (Node.data(b"\x00\x01"), b"\x00\x01"),
        ]
        for node, expected in cases:
            assert decode_value(node) == expected

    def test_array_preserves_order_and_kinds(self):
        node = Node.array(
            [
                Node.string("a"),
                Node.string("b"),
                Node.string("c"),
                Node.integer(4),
                Node.boolean(True),
            ]
        )
        result = decode_value(node, Any)
        assert result == ["a", "b", "c", 4, True]
        assert type(result[3]) is int
        assert type(result[4]) is bool

    def test_dict_becomes_dict(self):
        node = _dict(foo=Node.string("bar"), bool=Node.boolean(True))
        assert decode_value(node, Any) == {"foo": "bar", "bool": True}

    def test_nested_containers(self):
        node = _dict(list=Node.array([_dict(x=Node.integer(1)), Node.array([])]))
        assert decode_value(node) == {"list": [{"x": 1}, []]}

    def test_object_is_dynamic(self):
        assert decode_value(Node.integer(7), object) == 7

    def test_unsigned_64_max(self):
        assert decode_value(Node.integer(2**64 - 1)) == 2**64 - 1


class TestPrimitives:
    def test_matching_kinds_copy_directly(self):
        assert decode_value(Node.string("x"), str) == "x"
        assert decode_value(Node.boolean(False), bool) is False
        assert decode_value(Node.real(1.2), float) == 1.2
        assert decode_value(Node.data(b"ab"), bytes) == b"ab"
        assert decode_value(Node.date(WHEN), datetime.datetime) == WHEN

    def test_uint64_zero_and_one(self):
        assert decode_value(Node.integer(0), UInt64) == 0
        assert decode_value(Node.integer(1), UInt64) == 1

    def test_str_subclass_preserved(self):
        class Identifier(str):
            pass

        result = decode_value(Node.string("com.example"), Identifier)
        assert isinstance(result, Identifier)
        assert result == "com.example"

    def test_bytearray_destination(self):
        result = decode_value(Node.data(b"\x01"), bytearray)
        assert isinstance(result, bytearray)
        assert result == bytearray(b"\x01")

    def test_str_enum_destination(self):
        assert decode_value(Node.string("red"), Color) is Color.RED

    def test_invalid_str_enum_value(self):
        with pytest.raises(DecodeError, match="cannot construct Color") as exc_info:
            decode_value(Node.string("blue"), Color)
        assert exc_info.value.path == "$"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.parametrize(
        ("dest", "value"),
        [
            (Int8, -128),
            (Int8, 127),
            (Int16, -32768),
            (Int16, 32767),
            (Int32, -(2**31)),
            (Int32, 2**31 - 1),
            (Int64, -(2**63)),
            (Int64, 2**63 - 1),
            (UInt8, 255),
            (UInt16, 65535),
            (UInt32, 2**32 - 1),
            (UInt64, 2**64 - 1),
            (int, -(2**63)),
        ],
    )
    def test_integer_bounds_accepted(self, dest, value):
        assert decode_value(Node.integer(value), dest) == value

    @pytest.mark.parametrize(
        ("dest", "value"),
        [
            (UInt8, 300),
            (UInt8, 256),
            (UInt8, -1),
            (UInt64, -1),
            (Int8, 128),
            (Int8, -129),
            (Int16, 32768),
            (Int32, 2**31),
            (Int64, 2**63),
            (int, 2**64 - 1),
            (UInt32, 2**32),
        ],
    )
    def test_integer_overflow_rejected(self, dest, value):
        with pytest.raises(RangeError) as exc_info:
            decode_value(Node.integer(value), dest)
        assert exc_info.value.value == value

    def test_overflow_is_not_truncated(self):
        with pytest.raises(RangeError, match="uint8"):
            decode_value(Node.integer(300), UInt8)

    def test_integer_into_float(self):
        result = decode_value(Node.integer(3), float)
        assert result == 3.0
        assert type(result) is float

    def test_large_integer_into_float(self):
        assert decode_value(Node.integer(2**64 - 1), float) == float(2**64 - 1)

    def test_float32_rounds(self):
        result = decode_value(Node.real(1.2), Float32)
        assert result == to_float32(1.2)
        assert result != 1.2

    def test_float32_overflow(self):
        with pytest.raises(RangeError, match="float32"):
            decode_value(Node.real(FLOAT32_MAX * 2), Float32)

    def test_float32_accepts_infinity(self):
        assert decode_value(Node.real(float("inf")), Float32) == float("inf")

    def test_real_into_integer_rejected(self):
        with pytest.raises(TypeMismatchError) as exc_info:
            decode_value(Node.real(1.5), int)
        assert exc_info.value.node_kind == PlistKind.REAL

    def test_whole_real_into_integer_rejected(self):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.real(2.0), UInt8)

    @pytest.mark.parametrize("dest", [bool, str, bytes, datetime.datetime, list[int], Inner])
    def test_integer_into_non_numeric_rejected(self, dest):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.integer(1), dest)

    @pytest.mark.parametrize("dest", [int, str, float, UInt8])
    def test_boolean_not_interchangeable(self, dest):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.boolean(True), dest)

    def test_string_into_bool_rejected(self):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.string("true"), bool)

    def test_string_into_int_rejected(self):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.string("12"), int)

    @pytest.mark.parametrize("dest", [str, int, bytes, dict[str, Any]])
    def test_date_only_into_timestamp(self, dest):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.date(WHEN), dest)

    @pytest.mark.parametrize("dest", [str, list[int], datetime.datetime])
    def test_data_only_into_bytes(self, dest):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.data(b"x"), dest)

    def test_mismatch_message_names_both_kinds(self):
        with pytest.raises(TypeMismatchError, match="cannot decode plist date into str"):
            decode_value(Node.date(WHEN), str)


class TestSequences:
    def test_list_of_strings(self):
        node = Node.array([Node.string("foo"), Node.string("bar"), Node.string("baz")])
        assert decode_value(node, list[str]) == ["foo", "bar", "baz"]

    def test_tuple_container(self):
        node = Node.array([Node.integer(1), Node.integer(2)])
        assert decode_value(node, tuple[UInt8, ...]) == (1, 2)

    def test_abstract_sequence(self):
        node = Node.array([Node.integer(1)])
        assert decode_value(node, Sequence[int]) == [1]

    def test_bare_list_is_dynamic(self):
        node = Node.array([Node.integer(1), Node.string("a")])
        assert decode_value(node, list) == [1, "a"]

    def test_empty_array(self):
        assert decode_value(Node.array([]), list[str]) == []

    def test_element_mismatch_reports_index(self):
        node = Node.array([Node.string("ok"), Node.integer(2)])
        with pytest.raises(TypeMismatchError) as exc_info:
            decode_value(node, list[str])
        assert exc_info.value.path == "$[1]"

    def test_array_into_non_sequence_rejected(self):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.array([]), str)
        with pytest.raises(TypeMismatchError):
            decode_value(Node.array([]), dict[str, Any])

    def test_dict_into_sequence_rejected(self):
        with pytest.raises(TypeMismatchError):
            decode_value(_dict(), list[Any])

    def test_nested_lists(self):
        node = Node.array([Node.array([Node.integer(1)]), Node.array([])])
        assert decode_value(node, list[list[Int32]]) == [[1], []]


class TestMaps:
    def test_typed_values(self):
        node = _dict(a=Node.integer(1), b=Node.integer(2))
        assert decode_value(node, dict[str, UInt8]) == {"a": 1, "b": 2}

    def test_mapping_abc(self):
        assert decode_value(_dict(a=Node.string("x")), Mapping[str, str]) == {"a": "x"}

    def test_value_overflow_reports_key(self):
        node = _dict(ok=Node.integer(1), bad=Node.integer(999))
        with pytest.raises(RangeError) as exc_info:
            decode_value(node, dict[str, UInt8])
        assert exc_info.value.path == "$.bad"

    def test_keys_with_spaces_quoted_in_path(self):
        node = _dict(**{"band size": Node.string("x")})
        with pytest.raises(TypeMismatchError) as exc_info:
            decode_value(node, dict[str, int])
        assert exc_info.value.path == "$['band size']"

    def test_unknown_keys_allowed(self):
        node = _dict(anything=Node.boolean(True))
        assert decode_value(node, dict[str, Any]) == {"anything": True}


class TestRecords:
    def test_populates_nested_record(self):
        node = Node.dict(
            [
                ("Title", Node.string("doc")),
                ("inner", _dict(name=Node.string("n"), count=Node.integer(3))),
                ("tags", Node.array([Node.string("a")])),
                ("extras", _dict(k=Node.real(0.5))),
                ("note", Node.string("hi")),
            ]
        )
        assert decode_value(node, Outer) == Outer(
            title="doc",
            inner=Inner(name="n", count=3),
            tags=["a"],
            extras={"k": 0.5},
            note="hi",
        )

    def test_absent_fields_keep_defaults(self):
        result = decode_value(_dict(Title=Node.string("only")), Outer)
        assert result == Outer(title="only")
        assert result.note is None

    def test_absent_required_fields_get_zero_values(self):
        result = decode_value(_dict(), Required)
        assert result == Required(
            name="",
            flag=False,
            count=0,
            ratio=0.0,
            blob=b"",
            when=ZERO_TIMESTAMP,
            items=[],
            table={},
            anything=None,
            child=Inner(),
            maybe=None,
        )

    def test_unknown_key_strict(self):
        node = _dict(Title=Node.string("x"), Bogus=Node.integer(1))
        with pytest.raises(UnknownFieldError) as exc_info:
            decode_value(node, Outer)
        assert exc_info.value.key == "Bogus"
        assert exc_info.value.record == "Outer"

    def test_field_name_not_matched_when_tagged(self):
        with pytest.raises(UnknownFieldError):
            decode_value(_dict(title=Node.string("x")), Outer)

    def test_unknown_key_same_node_into_map_and_any(self):
        node = _dict(Title=Node.string("x"), Bogus=Node.integer(1))
        assert decode_value(node, dict[str, Any]) == {"Title": "x", "Bogus": 1}
        assert decode_value(node, Any) == {"Title": "x", "Bogus": 1}

    def test_unknown_key_lenient(self):
        node = _dict(Title=Node.string("x"), Bogus=Node.integer(1))
        result = decode_value(node, Outer, config=DecoderConfig(strict=False))
        assert result == Outer(title="x")

    def test_nested_unknown_key_path(self):
        node = _dict(inner=_dict(nope=Node.integer(1)))
        with pytest.raises(UnknownFieldError) as exc_info:
            decode_value(node, Outer)
        assert exc_info.value.path == "$.inner"

    def test_field_type_mismatch_path(self):
        node = _dict(inner=_dict(count=Node.string("3")))
        with pytest.raises(TypeMismatchError) as exc_info:
            decode_value(node, Outer)
        assert exc_info.value.path == "$.inner.count"

    def test_array_into_record_rejected(self):
        with pytest.raises(TypeMismatchError):
            decode_value(Node.array([]), Outer)

    def test_recursive_record(self):
        node = _dict(
            label=Node.string("root"),
            children=Node.array([_dict(label=Node.string("leaf"))]),
        )
        assert decode_value(node, Tree) == Tree("root", [Tree("leaf")])

    def test_post_init_failure_becomes_decode_error(self):
        @dataclass
        class Positive:
            value: int = 1

            def __post_init__(self) -> None:
                if self.value <= 0:
                    msg = "value must be positive"
                    raise ValueError(msg)

        with pytest.raises(DecodeError, match="value must be positive"):
            decode_value(_dict(value=Node.integer(0)), Positive)

    def test_invalid_enum_element_reports_path(self):
        @dataclass
        class Palette:
            colors: list[Color] = field(default_factory=list)

        node = _dict(colors=Node.array([Node.string("red"), Node.string("blue")]))
        with pytest.raises(DecodeError) as exc_info:
            decode_value(node, Palette)
        assert exc_info.value.path == "$.colors[1]"

    def test_absent_field_without_zero_value(self):
        @dataclass
        class Swatch:
            color: Color

        with pytest.raises(DecodeError, match="cannot construct Swatch"):
            decode_value(_dict(), Swatch)


class TestOptional:
    def test_optional_scalar(self):
        assert decode_value(Node.integer(5), UInt8 | None) == 5

    def test_optional_checks_inner(self):
        with pytest.raises(RangeError):
            decode_value(Node.integer(500), UInt8 | None)


class TestEngineApi:
    def test_decode_node_with_descriptor(self):
        assert decode_node(Node.string("x"), resolve(str)) == "x"

    def test_custom_resolver(self):
        resolver = TypeResolver()
        assert decode_value(Node.integer(1), UInt8, resolver=resolver) == 1
        assert len(resolver) == 1

    def test_engine_reusable_after_error(self):
        engine = DecodeEngine()
        with pytest.raises(TypeMismatchError):
            engine.decode(Node.array([Node.string("x")]), resolve(list[int]))
        assert engine.decode(Node.integer(2), resolve(int)) == 2
        assert engine.path == "$"

    def test_format_path(self):
        assert format_path([]) == "$"
        assert format_path(["items", 2, "name"]) == "$.items[2].name"
        assert format_path(["a-b"]) == "$['a-b']"
