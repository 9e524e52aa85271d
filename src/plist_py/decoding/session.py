"""Decoder session over a byte source, and the one-shot :func:`unmarshal`.

Typical usage::

    from plist_py import Decoder, EndOfInput

    decoder = Decoder(response)
    while True:
        try:
            info = decoder.decode(BundleInfo)
        except EndOfInput:
            break
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import IO, TYPE_CHECKING, Any

from plist_py.config import DEFAULT_CONFIG, DecoderConfig
from plist_py.decoding.engine import decode_value
from plist_py.errors import EndOfInput, ParseError
from plist_py.parsing.document import (
    PlistFormat,
    detect_format,
    find_xml_end,
    parse_document,
    parse_framed,
    skip_preamble,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from plist_py.schema.resolver import TypeResolver
    from plist_py.types.node import Node

logger = logging.getLogger(__name__)

# Bytes needed past the preamble to tell binary from XML
_MAGIC_LOOKAHEAD = 6


class DecoderState(IntEnum):
    """Lifecycle of a :class:`Decoder`."""

    READY = 0
    PARSING = 1
    EXHAUSTED = 2


class Decoder:
    """Sequential decoder over a stream of top-level plist documents.

    XML documents may follow each other back to back; a binary document
    consumes the rest of the source. Not safe for concurrent use.

    :param source: Binary file-like object with ``read(n)``, or an in-memory
        buffer (``bytes``, ``bytearray`` or ``memoryview``).
    :param config: Decoder configuration.
    :param resolver: Type resolver (defaults to the process-wide one).
    """

    def __init__(
        self,
        source: IO[bytes] | bytes | bytearray | memoryview,
        *,
        config: DecoderConfig | None = None,
        resolver: TypeResolver | None = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._resolver = resolver
        self._buf = bytearray()
        self._offset = 0
        self._eof = False
        self._state = DecoderState.READY
        self._last_format: PlistFormat | None = None
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._source: IO[bytes] | None = None
            self._buf.extend(source)
            self._eof = True
        else:
            self._source = source

    @property
    def state(self) -> DecoderState:
        """Current lifecycle state."""
        return self._state

    @property
    def offset(self) -> int:
        """Number of source bytes consumed so far."""
        return self._offset

    @property
    def last_format(self) -> PlistFormat | None:
        """Encoding of the most recently parsed document."""
        return self._last_format

    @property
    def config(self) -> DecoderConfig:
        return self._config

    def decode(self, dest_type: object = Any) -> Any:
        """Decode the next document into a new value of *dest_type*.

        :param dest_type: Destination type hint (default: dynamic ``Any``).
        :returns: The decoded value.
        :raises EndOfInput: If the source holds no further documents; raised
            again on every later call.
        :raises ParseError: If the next document is malformed.
        :raises DecodeError: If the document does not fit *dest_type*.
        :raises ConfigError: If *dest_type* cannot be resolved.
        """
        node = self.next_node()
        return decode_value(node, dest_type, config=self._config, resolver=self._resolver)

    def next_node(self) -> Node:
        """Parse the next document and return its root node without decoding.

        :raises EndOfInput: If the source holds no further documents.
        :raises ParseError: If the next document is malformed.
        """
        if self._state == DecoderState.EXHAUSTED:
            raise EndOfInput
        self._state = DecoderState.PARSING
        try:
            document, fmt = self._next_document()
            if document is None:
                self._state = DecoderState.EXHAUSTED
                raise EndOfInput
            self._last_format = fmt
            node = parse_framed(document, fmt, self._config)
        finally:
            if self._state == DecoderState.PARSING:
                self._state = DecoderState.READY
        logger.debug(
            "Parsed %s document of %d bytes (offset %d)", fmt.name, len(document), self._offset
        )
        return node

    def iter_decode(self, dest_type: object = Any) -> Iterator[Any]:
        """Yield decoded documents until the source is exhausted."""
        while True:
            try:
                yield self.decode(dest_type)
            except EndOfInput:
                return

    def __iter__(self) -> Iterator[Any]:
        return self.iter_decode()

    # -- framing ----------------------------------------------------------

    def _fill(self) -> bool:
        """Read one chunk from the source; return ``False`` at end of stream."""
        if self._eof or self._source is None:
            self._eof = True
            return False
        chunk = self._source.read(self._config.read_size)
        if not chunk:
            self._eof = True
            return False
        self._buf.extend(chunk)
        if len(self._buf) > self._config.max_document_size:
            msg = f"Document exceeds limit of {self._config.max_document_size} bytes"
            logger.warning(msg)
            error = ParseError(msg, offset=self._offset)
            # Nothing to resynchronise on past an oversized document
            self._offset += len(self._buf)
            self._buf.clear()
            self._eof = True
            self._state = DecoderState.EXHAUSTED
            raise error
        return True

    def _consume(self, end: int) -> bytes:
        document = bytes(self._buf[:end])
        del self._buf[:end]
        self._offset += end
        return document

    def _next_document(self) -> tuple[bytes | None, PlistFormat]:
        # Skip inter-document whitespace, reading more as needed
        while True:
            start = skip_preamble(self._buf)
            if start < len(self._buf) or not self._fill():
                break
        self._consume(start)
        if not self._buf:
            return None, PlistFormat.XML

        while len(self._buf) < _MAGIC_LOOKAHEAD and self._fill():
            pass
        fmt = detect_format(self._buf)

        if fmt == PlistFormat.BINARY:
            while self._fill():
                pass
            return self._consume(len(self._buf)), fmt

        scan_from = 0
        while True:
            end = find_xml_end(self._buf, scan_from)
            if end is not None:
                return self._consume(end), fmt
            # The closing tag may straddle the chunk boundary
            partial = self._buf.rfind(b"</plist")
            scan_from = partial if partial >= 0 else max(0, len(self._buf) - 7)
            if not self._fill():
                return self._consume(len(self._buf)), fmt


def new_decoder(
    source: IO[bytes] | bytes | bytearray | memoryview,
    *,
    config: DecoderConfig | None = None,
    resolver: TypeResolver | None = None,
) -> Decoder:
    """Create a :class:`Decoder` over *source*."""
    return Decoder(source, config=config, resolver=resolver)


def unmarshal(
    data: bytes | bytearray | memoryview,
    dest_type: object = Any,
    *,
    config: DecoderConfig | None = None,
    resolver: TypeResolver | None = None,
) -> Any:
    """Decode a complete in-memory plist document.

    :param data: Exactly one XML or binary plist document.
    :param dest_type: Destination type hint (default: dynamic ``Any``).
    :param config: Decoder configuration.
    :param resolver: Type resolver (defaults to the process-wide one).
    :returns: The decoded value.
    :raises ParseError: If the document is malformed or empty.
    :raises DecodeError: If the document does not fit *dest_type*.
    :raises ConfigError: If *dest_type* cannot be resolved.
    """
    config = config or DEFAULT_CONFIG
    node = parse_document(bytes(data), config)
    return decode_value(node, dest_type, config=config, resolver=resolver)
