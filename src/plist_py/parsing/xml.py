"""XML property list parser built on :mod:`xml.parsers.expat`.

Produces a :class:`~plist_py.types.node.Node` tree from one complete
XML plist document (``<plist version="1.0">...</plist>``).
"""

from __future__ import annotations

import binascii
import datetime
import logging
import re
from xml.parsers.expat import ExpatError, ParserCreate

from plist_py.errors import ParseError
from plist_py.types.node import INTEGER_MAX, INTEGER_MIN, Node, PlistKind

logger = logging.getLogger(__name__)

_LEAF_ELEMENTS = frozenset({"string", "integer", "real", "true", "false", "date", "data", "key"})

_DATE_RE = re.compile(
    r"(?P<year>\d{4})"
    r"(?:-(?P<month>\d\d)"
    r"(?:-(?P<day>\d\d)"
    r"(?:T(?P<hour>\d\d)"
    r"(?::(?P<minute>\d\d)"
    r"(?::(?P<second>\d\d)(?:\.(?P<fraction>\d{1,6})\d*)?)?)?)?)?)?Z",
    re.ASCII,
)


def parse_date(text: str) -> datetime.datetime:
    """Parse a plist ``<date>`` body such as ``2011-05-12T01:00:00Z``.

    Trailing components may be omitted (``2011-05Z``), as Apple's parser
    allows. The result is a timezone-aware UTC datetime.

    :param text: Element text.
    :returns: Parsed UTC datetime.
    :raises ValueError: If *text* is not a plist date.
    """
    m = _DATE_RE.fullmatch(text.strip())
    if m is None:
        msg = f"Invalid plist date {text!r}"
        raise ValueError(msg)
    gd = m.groupdict()
    fraction = gd["fraction"]
    return datetime.datetime(
        int(gd["year"]),
        int(gd["month"] or 1),
        int(gd["day"] or 1),
        int(gd["hour"] or 0),
        int(gd["minute"] or 0),
        int(gd["second"] or 0),
        int(fraction.ljust(6, "0")) if fraction else 0,
        tzinfo=datetime.UTC,
    )


def parse_integer(text: str) -> int:
    """Parse a plist ``<integer>`` body (decimal, or hex with ``0x``).

    :raises ValueError: If *text* is not an integer or exceeds 64 bits.
    """
    raw = text.strip()
    body = raw.lstrip("+-")
    value = int(raw, 16) if body[:2].lower() == "0x" else int(raw, 10)
    if not INTEGER_MIN <= value <= INTEGER_MAX:
        msg = f"Integer {raw} does not fit in 64 bits"
        raise ValueError(msg)
    return value


class _Frame:
    """An array or dict under construction."""

    __slots__ = ("items", "key", "keys", "kind")

    def __init__(self, kind: PlistKind) -> None:
        self.kind = kind
        self.items: list[object] = []
        self.key: str | None = None
        self.keys: set[str] = set()


class XMLPlistParser:
    """Single-use expat handler set that assembles a node tree.

    :param max_depth: Maximum array/dict nesting depth.
    """

    def __init__(self, *, max_depth: int = 256) -> None:
        self._max_depth = max_depth
        self._stack: list[_Frame] = []
        self._text: list[str] = []
        self._in_leaf = False
        self._root: Node | None = None
        self._plist_open = False
        self._parser = ParserCreate()
        self._parser.StartElementHandler = self._start
        self._parser.EndElementHandler = self._end
        self._parser.CharacterDataHandler = self._data
        self._parser.EntityDeclHandler = self._entity_decl

    def parse(self, data: bytes) -> Node:
        """Parse *data* as one complete XML plist document.

        :param data: Encoded document bytes.
        :returns: The root node.
        :raises ParseError: If the document is malformed.
        """
        try:
            self._parser.Parse(data, True)
        except ExpatError as exc:
            msg = f"Malformed XML plist: {exc}"
            logger.warning(msg)
            raise ParseError(msg) from exc
        if self._root is None:
            msg = "XML plist contains no value"
            logger.warning(msg)
            raise ParseError(msg)
        return self._root

    # -- expat handlers ---------------------------------------------------

    def _fail(self, message: str) -> ParseError:
        line = self._parser.CurrentLineNumber
        msg = f"{message} at line {line}"
        logger.warning(msg)
        return ParseError(msg, offset=self._parser.CurrentByteIndex)

    def _entity_decl(self, entity_name: str, *args: object) -> None:
        raise self._fail(f"Entity declarations are not allowed ({entity_name!r})")

    def _start(self, name: str, attrs: dict[str, str]) -> None:
        if self._in_leaf:
            raise self._fail(f"Unexpected <{name}> inside a scalar element")
        if name == "plist":
            if self._plist_open or self._stack or self._root is not None:
                raise self._fail("Nested <plist> element")
            self._plist_open = True
            return
        if self._root is not None and not self._stack:
            raise self._fail(f"Unexpected <{name}> after the root value")
        if name in ("array", "dict"):
            if len(self._stack) >= self._max_depth:
                raise self._fail(f"Nesting exceeds maximum depth {self._max_depth}")
            self._check_value_position(name)
            self._stack.append(_Frame(PlistKind.ARRAY if name == "array" else PlistKind.DICT))
            return
        if name not in _LEAF_ELEMENTS:
            raise self._fail(f"Unknown element <{name}>")
        if name != "key":
            self._check_value_position(name)
        self._in_leaf = True
        self._text = []

    def _end(self, name: str) -> None:
        if name == "plist":
            self._plist_open = False
            return
        if name in ("array", "dict"):
            frame = self._stack.pop()
            if frame.kind == PlistKind.DICT:
                if frame.key is not None:
                    raise self._fail(f"Missing value for key {frame.key!r}")
                node = Node(PlistKind.DICT, tuple(frame.items))
            else:
                node = Node(PlistKind.ARRAY, tuple(frame.items))
            self._add(node)
            return

        self._in_leaf = False
        text = "".join(self._text)
        self._text = []
        if name == "key":
            self._set_key(text)
            return
        try:
            node = self._leaf(name, text)
        except (ValueError, binascii.Error) as exc:
            raise self._fail(str(exc)) from exc
        self._add(node)

    def _data(self, data: str) -> None:
        if self._in_leaf:
            self._text.append(data)
        elif data.strip():
            raise self._fail(f"Unexpected text {data.strip()[:20]!r}")

    # -- tree assembly ----------------------------------------------------

    @staticmethod
    def _leaf(name: str, text: str) -> Node:
        match name:
            case "string":
                return Node(PlistKind.STRING, text)
            case "integer":
                return Node(PlistKind.INTEGER, parse_integer(text))
            case "real":
                return Node(PlistKind.REAL, float(text.strip()))
            case "true":
                return Node(PlistKind.BOOLEAN, True)
            case "false":
                return Node(PlistKind.BOOLEAN, False)
            case "date":
                return Node(PlistKind.DATE, parse_date(text))
            case _:  # data
                return Node(PlistKind.DATA, binascii.a2b_base64(text.encode("ascii")))

    def _check_value_position(self, name: str) -> None:
        if self._stack:
            frame = self._stack[-1]
            if frame.kind == PlistKind.DICT and frame.key is None:
                raise self._fail(f"Expected <key> in dict, got <{name}>")

    def _set_key(self, key: str) -> None:
        if not self._stack or self._stack[-1].kind != PlistKind.DICT:
            raise self._fail("Unexpected <key> outside a dict")
        frame = self._stack[-1]
        if frame.key is not None:
            raise self._fail(f"Missing value for key {frame.key!r}")
        if key in frame.keys:
            raise self._fail(f"Duplicate dict key {key!r}")
        frame.keys.add(key)
        frame.key = key

    def _add(self, node: Node) -> None:
        if not self._stack:
            self._root = node
            return
        frame = self._stack[-1]
        if frame.kind == PlistKind.DICT:
            frame.items.append((frame.key, node))
            frame.key = None
        else:
            frame.items.append(node)


def parse_xml(data: bytes, *, max_depth: int = 256) -> Node:
    """Parse one complete XML plist document into a node tree.

    :param data: Document bytes, including the XML declaration if any.
    :param max_depth: Maximum array/dict nesting depth.
    :returns: The root node.
    :raises ParseError: If the document is malformed.
    """
    return XMLPlistParser(max_depth=max_depth).parse(data)
