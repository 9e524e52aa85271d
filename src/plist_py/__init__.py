"""plist-py: Apple property list decoding for Python 3.13+.

Typical usage::

    from dataclasses import dataclass

    from plist_py import UInt64, plist_field, unmarshal

    @dataclass
    class SparseBundleHeader:
        version: str = plist_field("CFBundleInfoDictionaryVersion", default="")
        band_size: UInt64 = plist_field("band-size", default=0)

    header = unmarshal(data, SparseBundleHeader)
"""

__version__ = "1.0.0"

from plist_py.config import DecoderConfig
from plist_py.decoding.engine import decode_node, decode_value
from plist_py.decoding.session import Decoder, DecoderState, new_decoder, unmarshal
from plist_py.errors import (
    ConfigError,
    DecodeError,
    EndOfInput,
    ParseError,
    PlistError,
    RangeError,
    TypeMismatchError,
    UnknownFieldError,
)
from plist_py.parsing.document import PlistFormat, parse_document
from plist_py.schema.resolver import TypeResolver, resolve
from plist_py.serialization import serialize
from plist_py.types.node import Node, PlistKind
from plist_py.types.numeric import (
    Float32,
    Float64,
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

__all__ = [
    "ConfigError",
    "DecodeError",
    "Decoder",
    "DecoderConfig",
    "DecoderState",
    "EndOfInput",
    "Float32",
    "Float64",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "JsonSerializer",
    "Node",
    "ParseError",
    "PlistError",
    "PlistFormat",
    "PlistKind",
    "RangeError",
    "TypeMismatchError",
    "TypeResolver",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UnknownFieldError",
    "__version__",
    "decode_node",
    "decode_value",
    "new_decoder",
    "parse_document",
    "plist_field",
    "resolve",
    "serialize",
    "unmarshal",
]


def __getattr__(name: str) -> object:
    """Lazy-load the JSON serializer so importing plist_py does not import orjson."""
    if name == "JsonSerializer":
        from plist_py.serialization.json import JsonSerializer

        globals()["JsonSerializer"] = JsonSerializer
        return JsonSerializer
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
