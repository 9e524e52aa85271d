"""Tests for the streaming Decoder session."""

from __future__ import annotations

import io
import threading
import urllib.request
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

import pytest

from plist_py import (
    Decoder,
    DecoderConfig,
    DecoderState,
    EndOfInput,
    ParseError,
    PlistError,
    PlistFormat,
    TypeMismatchError,
    new_decoder,
)
from tests.helpers import ChunkedReader, binary_plist, xml_plist

BAR_DOC = xml_plist("<string>bar</string>")


@dataclass
class Named:
    name: str = ""


class TestSingleDocument:
    def test_decode_then_end_of_input(self):
        decoder = Decoder(io.BytesIO(BAR_DOC))
        assert decoder.decode(str) == "bar"
        with pytest.raises(EndOfInput):
            decoder.decode(str)

    def test_end_of_input_is_sticky(self):
        decoder = Decoder(io.BytesIO(BAR_DOC))
        decoder.decode()
        for _ in range(3):
            with pytest.raises(EndOfInput):
                decoder.decode()
        assert decoder.state == DecoderState.EXHAUSTED

    def test_empty_source(self):
        decoder = new_decoder(io.BytesIO(b""))
        with pytest.raises(EndOfInput):
            decoder.decode()

    def test_whitespace_only_source(self):
        with pytest.raises(EndOfInput):
            Decoder(io.BytesIO(b"\n  \r\n\t")).decode()

    def test_bytes_source(self):
        decoder = Decoder(BAR_DOC)
        assert decoder.decode() == "bar"
        assert decoder.offset == len(BAR_DOC)

    @pytest.mark.parametrize("wrap", [bytearray, memoryview])
    def test_buffer_sources(self, wrap):
        stream = BAR_DOC + xml_plist("<integer>4</integer>")
        assert list(Decoder(wrap(stream))) == ["bar", 4]

    def test_end_of_input_is_not_a_plist_error(self):
        decoder = Decoder(b"")
        with pytest.raises(EndOfInput) as exc_info:
            decoder.decode()
        assert not isinstance(exc_info.value, PlistError)
        assert isinstance(exc_info.value, EOFError)


class TestMultipleDocuments:
    def test_back_to_back_xml(self):
        stream = xml_plist("<string>one</string>") + xml_plist("<integer>2</integer>")
        decoder = Decoder(io.BytesIO(stream))
        assert decoder.decode() == "one"
        assert decoder.decode() == 2
        with pytest.raises(EndOfInput):
            decoder.decode()

    def test_whitespace_between_documents(self):
        stream = xml_plist("<true/>") + b"\n\n" + xml_plist("<false/>") + b"\n"
        assert list(Decoder(io.BytesIO(stream))) == [True, False]

    def test_documents_split_across_reads(self):
        stream = (
            xml_plist("<dict><key>name</key><string>a</string></dict>")
            + xml_plist("<dict><key>name</key><string>b</string></dict>")
        )
        reader = ChunkedReader(stream, chunk=5)
        decoder = Decoder(reader, config=DecoderConfig(read_size=3))
        assert list(decoder.iter_decode(Named)) == [Named("a"), Named("b")]
        assert reader.reads > 10

    def test_offset_advances_per_document(self):
        first = xml_plist("<string>one</string>")
        second = xml_plist("<string>two</string>")
        decoder = Decoder(io.BytesIO(first + second))
        decoder.decode()
        assert decoder.offset == len(first)
        decoder.decode()
        assert decoder.offset == len(first) + len(second)

    def test_xml_then_binary(self):
        stream = xml_plist("<string>xml</string>") + binary_plist({"k": 1})
        decoder = Decoder(io.BytesIO(stream))
        assert decoder.decode() == "xml"
        assert decoder.last_format == PlistFormat.XML
        assert decoder.decode(dict[str, int]) == {"k": 1}
        assert decoder.last_format == PlistFormat.BINARY
        with pytest.raises(EndOfInput):
            decoder.decode()

    def test_binary_consumes_rest_of_stream(self):
        data = binary_plist([1, 2, 3])
        decoder = Decoder(ChunkedReader(data, chunk=4))
        assert decoder.decode(list[int]) == [1, 2, 3]
        assert decoder.offset == len(data)


class TestErrors:
    def test_parse_error_distinct_from_type_error(self):
        decoder = Decoder(io.BytesIO(xml_plist("<string>x</string>")))
        with pytest.raises(TypeMismatchError):
            decoder.decode(int)

        decoder = Decoder(io.BytesIO(xml_plist("<string>x</integer>")))
        with pytest.raises(ParseError):
            decoder.decode(int)

    def test_state_ready_after_failure(self):
        stream = xml_plist("<integer>nope</integer>") + xml_plist("<integer>3</integer>")
        decoder = Decoder(io.BytesIO(stream))
        with pytest.raises(ParseError):
            decoder.decode()
        assert decoder.state == DecoderState.READY
        assert decoder.decode() == 3

    def test_unterminated_document(self):
        decoder = Decoder(io.BytesIO(b'<plist version="1.0"><array><string>a</string>'))
        with pytest.raises(ParseError):
            decoder.decode()
        with pytest.raises(EndOfInput):
            decoder.decode()

    def test_read_errors_propagate(self):
        class BrokenReader:
            def read(self, n: int) -> bytes:
                raise OSError("connection reset")

        decoder = Decoder(BrokenReader())
        with pytest.raises(OSError, match="connection reset"):
            decoder.decode()

    def test_document_size_limit(self):
        big = xml_plist("<string>" + "x" * 4096 + "</string>")
        decoder = Decoder(
            io.BytesIO(big), config=DecoderConfig(max_document_size=1024, read_size=256)
        )
        with pytest.raises(ParseError, match="exceeds limit"):
            decoder.decode()


class _PlistHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "application/x-plist")
        self.send_header("Content-Length", str(len(BAR_DOC)))
        self.end_headers()
        self.wfile.write(BAR_DOC)

    def log_message(self, format: str, *args: Any) -> None:
        pass


@pytest.fixture
def plist_server():
    server = HTTPServer(("127.0.0.1", 0), _PlistHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/"
    finally:
        server.shutdown()
        server.server_close()


class TestHTTPDecoding:
    def test_decode_response_body(self, plist_server):
        with urllib.request.urlopen(plist_server, timeout=5) as response:
            decoder = Decoder(response)
            assert decoder.decode(str) == "bar"
            with pytest.raises(EndOfInput):
                decoder.decode(str)
