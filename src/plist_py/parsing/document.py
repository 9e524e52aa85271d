"""Format detection and document framing.

A byte stream may carry several XML plists back to back; a binary plist
always runs to the end of the stream because its trailer sits at the end.
"""

from __future__ import annotations

import logging
import re
from enum import IntEnum

from plist_py.config import DEFAULT_CONFIG, DecoderConfig
from plist_py.errors import ParseError
from plist_py.parsing.binary import BINARY_MAGIC, parse_binary
from plist_py.parsing.xml import parse_xml
from plist_py.types.node import Node

logger = logging.getLogger(__name__)

_UTF8_BOM = b"\xef\xbb\xbf"
_LEADING_SPACE = b" \t\r\n"
_XML_END_RE = re.compile(rb"</plist\s*>")


class PlistFormat(IntEnum):
    """On-the-wire plist encodings."""

    XML = 0
    BINARY = 1


def skip_preamble(buf: bytes | bytearray, start: int = 0) -> int:
    """Return the index of the first byte after whitespace and a UTF-8 BOM."""
    pos = start
    while True:
        if buf.startswith(_UTF8_BOM, pos):
            pos += len(_UTF8_BOM)
        elif pos < len(buf) and buf[pos] in _LEADING_SPACE:
            pos += 1
        else:
            return pos


def detect_format(buf: bytes | bytearray, start: int = 0) -> PlistFormat:
    """Detect the encoding of the document starting at *start*.

    :param buf: Buffered bytes; at least six bytes past *start* are needed
        to recognise binary plists.
    :param start: Offset of the first non-whitespace byte.
    :returns: The detected :class:`PlistFormat`.
    """
    if buf.startswith(BINARY_MAGIC, start):
        return PlistFormat.BINARY
    return PlistFormat.XML


def find_xml_end(buf: bytes | bytearray, start: int = 0) -> int | None:
    """Find the end of the XML document beginning at or before *start*.

    :param buf: Buffered bytes.
    :param start: Offset to resume the search from.
    :returns: Offset just past the closing ``</plist>`` tag, or ``None``
        if the buffer does not yet contain it.
    """
    m = _XML_END_RE.search(buf, start)
    return m.end() if m is not None else None


def parse_framed(data: bytes, fmt: PlistFormat, config: DecoderConfig = DEFAULT_CONFIG) -> Node:
    """Parse a single framed document of a known format.

    :param data: Exactly one document.
    :param fmt: Its encoding.
    :param config: Decoder configuration (nesting and expansion limits).
    :returns: Root node of the document.
    :raises ParseError: If the document is malformed.
    """
    if len(data) > config.max_document_size:
        msg = f"Document of {len(data)} bytes exceeds limit of {config.max_document_size}"
        logger.warning(msg)
        raise ParseError(msg)
    if fmt == PlistFormat.BINARY:
        return parse_binary(data, max_depth=config.max_depth, max_nodes=config.max_nodes)
    return parse_xml(data, max_depth=config.max_depth)


def parse_document(data: bytes, config: DecoderConfig = DEFAULT_CONFIG) -> Node:
    """Parse a complete in-memory buffer holding exactly one document.

    The format is auto-detected.

    :param data: Document bytes.
    :param config: Decoder configuration.
    :returns: Root node of the document.
    :raises ParseError: If the buffer is empty or the document is malformed.
    """
    start = skip_preamble(data)
    if start >= len(data):
        msg = "Empty plist document"
        logger.warning(msg)
        raise ParseError(msg)
    fmt = detect_format(data, start)
    return parse_framed(bytes(data[start:]), fmt, config)
