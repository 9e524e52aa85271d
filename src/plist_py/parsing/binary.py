"""Binary property list (``bplist00``) parser.

Layout::

    header         "bplist00"
    object table   marker-prefixed objects
    offset table   offset_int_size bytes per object
    trailer        32 bytes at end of file

Trailer structure (big-endian)::

    typedef struct {
        uint8_t  unused[5];
        uint8_t  sort_version;
        uint8_t  offset_int_size;
        uint8_t  object_ref_size;
        uint64_t num_objects;
        uint64_t top_object;
        uint64_t offset_table_offset;
    } trailer;
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from plist_py.errors import ParseError
from plist_py.types.node import INTEGER_MAX, INTEGER_MIN, Node, PlistKind, date_from_apple_seconds

logger = logging.getLogger(__name__)

BINARY_MAGIC = b"bplist"
_HEADER = b"bplist00"
_TRAILER = struct.Struct(">5xBBBQQQ")
_REAL32 = struct.Struct(">f")
_REAL64 = struct.Struct(">d")


@dataclass(frozen=True, slots=True)
class Trailer:
    """Decoded binary plist trailer."""

    sort_version: int
    offset_int_size: int
    object_ref_size: int
    num_objects: int
    top_object: int
    offset_table_offset: int


def _fail(message: str, offset: int | None = None) -> ParseError:
    logger.warning("bplist: %s", message)
    return ParseError(f"Malformed binary plist: {message}", offset=offset)


def decode_trailer(buf: memoryview | bytes) -> Trailer:
    """Decode and sanity-check the 32-byte trailer at the end of *buf*.

    :param buf: Complete binary plist document.
    :returns: The decoded :class:`Trailer`.
    :raises ParseError: If the trailer is missing or inconsistent.
    """
    if len(buf) < len(_HEADER) + _TRAILER.size:
        raise _fail(f"document too short ({len(buf)} bytes)")
    trailer = Trailer(*_TRAILER.unpack_from(buf, len(buf) - _TRAILER.size))
    table_end = len(buf) - _TRAILER.size
    if trailer.offset_int_size not in (1, 2, 4, 8):
        raise _fail(f"invalid offset size {trailer.offset_int_size}")
    if trailer.object_ref_size not in (1, 2, 4, 8):
        raise _fail(f"invalid object reference size {trailer.object_ref_size}")
    if trailer.num_objects == 0 or trailer.top_object >= trailer.num_objects:
        raise _fail(f"top object {trailer.top_object} outside {trailer.num_objects} objects")
    if not len(_HEADER) <= trailer.offset_table_offset <= table_end:
        raise _fail(f"offset table at {trailer.offset_table_offset} outside object data")
    if trailer.offset_table_offset + trailer.num_objects * trailer.offset_int_size > table_end:
        raise _fail("offset table overlaps trailer")
    return trailer


class BinaryPlistParser:
    """Parser for a single complete binary plist document.

    :param data: The whole document, header through trailer.
    :param max_depth: Maximum array/dict nesting depth.
    :param max_nodes: Maximum number of values the document may expand to,
        counting a shared object once per reference.
    """

    def __init__(
        self, data: bytes | memoryview, *, max_depth: int = 256, max_nodes: int = 1 << 20
    ) -> None:
        self._buf = memoryview(data) if isinstance(data, bytes) else data
        self._max_depth = max_depth
        self._max_nodes = max_nodes
        self._offsets: list[int] = []
        self._ref_size = 0
        self._active: set[int] = set()
        self._parsed: dict[int, Node] = {}
        self._weights: dict[int, int] = {}
        self._heights: dict[int, int] = {}

    def parse(self) -> Node:
        """Parse the document and return its root node.

        :raises ParseError: If the document is malformed.
        """
        if bytes(self._buf[:6]) != BINARY_MAGIC:
            raise _fail("missing bplist magic", 0)
        version = bytes(self._buf[6:8])
        if version != b"00":
            raise _fail(f"unsupported version {version!r}", 6)
        trailer = decode_trailer(self._buf)
        self._ref_size = trailer.object_ref_size
        self._offsets = self._read_offset_table(trailer)
        return self._parse_ref(trailer.top_object, 0)

    def _read_offset_table(self, trailer: Trailer) -> list[int]:
        size = trailer.offset_int_size
        start = trailer.offset_table_offset
        limit = trailer.offset_table_offset
        offsets = []
        for i in range(trailer.num_objects):
            pos = start + i * size
            offset = int.from_bytes(self._buf[pos : pos + size], "big")
            if not len(_HEADER) <= offset < limit:
                raise _fail(f"object {i} offset {offset} outside object table", pos)
            offsets.append(offset)
        return offsets

    def _read_uint(self, offset: int, size: int) -> int:
        end = offset + size
        if end > len(self._buf):
            raise _fail(f"truncated {size}-byte integer", offset)
        return int.from_bytes(self._buf[offset:end], "big")

    def _read_count(self, marker_lo: int, offset: int) -> tuple[int, int]:
        """Return ``(count, offset of payload)`` for a sized object."""
        if marker_lo != 0x0F:
            return marker_lo, offset
        # Count is stored as a following integer object (0x1n marker)
        if offset >= len(self._buf):
            raise _fail("truncated object count", offset)
        int_marker = self._buf[offset]
        if int_marker >> 4 != 0x1 or int_marker & 0x0F > 3:
            raise _fail(f"invalid count marker 0x{int_marker:02X}", offset)
        size = 1 << (int_marker & 0x0F)
        return self._read_uint(offset + 1, size), offset + 1 + size

    def _slice(self, offset: int, length: int) -> memoryview:
        if offset + length > len(self._buf):
            raise _fail(f"object payload of {length} bytes truncated", offset)
        return self._buf[offset : offset + length]

    def _refs(self, offset: int, count: int) -> list[int]:
        size = self._ref_size
        data = self._slice(offset, count * size)
        return [int.from_bytes(data[i * size : (i + 1) * size], "big") for i in range(count)]

    def _parse_ref(self, ref: int, depth: int) -> Node:
        if ref >= len(self._offsets):
            raise _fail(f"object reference {ref} outside {len(self._offsets)} objects")
        if ref in self._parsed:
            # A shared subtree must also fit below the depth it is reused at
            if depth + self._heights[ref] > self._max_depth:
                raise _fail(f"nesting exceeds maximum depth {self._max_depth}")
            return self._parsed[ref]
        if ref in self._active:
            raise _fail(f"object {ref} references itself")
        self._active.add(ref)
        try:
            node, weight, height = self._parse_object(self._offsets[ref], depth)
        finally:
            self._active.discard(ref)
        self._parsed[ref] = node
        self._weights[ref] = weight
        self._heights[ref] = height
        return node

    def _parse_object(self, offset: int, depth: int) -> tuple[Node, int, int]:
        """Parse the object at *offset*.

        :returns: The node, the number of values it expands to, and the
            number of container levels it spans.
        """
        marker = self._buf[offset]
        hi, lo = marker >> 4, marker & 0x0F
        match hi:
            case 0xA | 0xB | 0xC:
                count, start = self._read_count(lo, offset + 1)
                self._check_depth(depth, offset)
                refs = self._refs(start, count)
                children = tuple(self._parse_ref(r, depth + 1) for r in refs)
                return Node(PlistKind.ARRAY, children), *self._measure(refs, offset)
            case 0xD:
                count, start = self._read_count(lo, offset + 1)
                self._check_depth(depth, offset)
                return self._parse_dict(count, start, depth, offset)
            case _:
                return self._parse_scalar(marker, offset), 1, 0

    def _measure(self, refs: list[int], offset: int) -> tuple[int, int]:
        weight = 1 + sum(self._weights[r] for r in refs)
        if weight > self._max_nodes:
            raise _fail(f"object graph expands to more than {self._max_nodes} values", offset)
        height = 1 + max((self._heights[r] for r in refs), default=0)
        return weight, height

    def _parse_scalar(self, marker: int, offset: int) -> Node:
        hi, lo = marker >> 4, marker & 0x0F
        body = offset + 1

        match hi:
            case 0x0 if marker in (0x08, 0x09):
                return Node(PlistKind.BOOLEAN, marker == 0x09)
            case 0x1:
                return Node(PlistKind.INTEGER, self._parse_int(lo, body))
            case 0x2:
                if lo == 2:
                    return Node(PlistKind.REAL, _REAL32.unpack(self._slice(body, 4))[0])
                if lo == 3:
                    return Node(PlistKind.REAL, _REAL64.unpack(self._slice(body, 8))[0])
                raise _fail(f"invalid real size marker 0x{marker:02X}", offset)
            case 0x3 if marker == 0x33:
                seconds = _REAL64.unpack(self._slice(body, 8))[0]
                try:
                    return Node(PlistKind.DATE, date_from_apple_seconds(seconds))
                except (OverflowError, ValueError) as exc:
                    raise _fail(f"date {seconds} out of range", offset) from exc
            case 0x4:
                count, start = self._read_count(lo, body)
                return Node(PlistKind.DATA, bytes(self._slice(start, count)))
            case 0x5:
                count, start = self._read_count(lo, body)
                return Node(PlistKind.STRING, self._decode_text(start, count, "ascii"))
            case 0x6:
                count, start = self._read_count(lo, body)
                return Node(PlistKind.STRING, self._decode_text(start, count * 2, "utf-16-be"))
            case 0x7:
                count, start = self._read_count(lo, body)
                return Node(PlistKind.STRING, self._decode_text(start, count, "utf-8"))
            case 0x8:
                # Keyed-archiver UID; materialised as its integer value
                return Node(PlistKind.INTEGER, self._read_uint(body, lo + 1))
            case _:
                raise _fail(f"unsupported object marker 0x{marker:02X}", offset)

    def _parse_int(self, lo: int, body: int) -> int:
        if lo > 4:
            raise _fail(f"invalid integer size marker 0x1{lo:X}", body - 1)
        size = 1 << lo
        data = self._slice(body, size)
        # 1, 2 and 4 byte integers are unsigned; 8 and 16 byte are signed
        value = int.from_bytes(data, "big", signed=size >= 8)
        if not INTEGER_MIN <= value <= INTEGER_MAX:
            raise _fail(f"integer {value} does not fit in 64 bits", body)
        return value

    def _decode_text(self, start: int, length: int, encoding: str) -> str:
        try:
            return bytes(self._slice(start, length)).decode(encoding)
        except UnicodeDecodeError as exc:
            raise _fail(f"invalid {encoding} string", start) from exc

    def _check_depth(self, depth: int, offset: int) -> None:
        if depth >= self._max_depth:
            raise _fail(f"nesting exceeds maximum depth {self._max_depth}", offset)

    def _parse_dict(
        self, count: int, start: int, depth: int, offset: int
    ) -> tuple[Node, int, int]:
        key_refs = self._refs(start, count)
        value_refs = self._refs(start + count * self._ref_size, count)
        pairs = []
        seen: set[str] = set()
        for key_ref, value_ref in zip(key_refs, value_refs, strict=True):
            key_node = self._parse_ref(key_ref, depth + 1)
            if key_node.kind != PlistKind.STRING:
                raise _fail(f"dict key must be a string, got {key_node.kind.name.lower()}")
            key = key_node.value
            if key in seen:
                raise _fail(f"duplicate dict key {key!r}")
            seen.add(key)
            pairs.append((key, self._parse_ref(value_ref, depth + 1)))
        return Node(PlistKind.DICT, tuple(pairs)), *self._measure(key_refs + value_refs, offset)


def parse_binary(
    data: bytes | memoryview, *, max_depth: int = 256, max_nodes: int = 1 << 20
) -> Node:
    """Parse one complete binary plist document into a node tree.

    :param data: The whole document, header through trailer.
    :param max_depth: Maximum array/dict nesting depth.
    :param max_nodes: Maximum number of values after following shared references.
    :returns: The root node.
    :raises ParseError: If the document is malformed.
    """
    return BinaryPlistParser(data, max_depth=max_depth, max_nodes=max_nodes).parse()
