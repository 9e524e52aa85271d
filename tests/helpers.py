"""Shared test utilities for plist-py tests."""

from __future__ import annotations

import plistlib

XML_HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" '
    '"http://www.apple.com/DTDs/PropertyList-1.0.dtd">\n'
)


def xml_plist(body: str) -> bytes:
    """Wrap *body* in a complete XML plist document."""
    return f'{XML_HEADER}<plist version="1.0">{body}</plist>'.encode()


def binary_plist(value: object) -> bytes:
    """Encode *value* as a binary plist using the standard library writer."""
    return plistlib.dumps(value, fmt=plistlib.FMT_BINARY, sort_keys=False)


class ChunkedReader:
    """Binary reader that returns at most *chunk* bytes per ``read`` call.

    Mimics a network body where documents arrive split across reads.
    """

    def __init__(self, data: bytes, chunk: int = 7) -> None:
        self._data = data
        self._pos = 0
        self._chunk = chunk
        self.reads = 0

    def read(self, n: int = -1) -> bytes:
        self.reads += 1
        size = self._chunk if n < 0 else min(n, self._chunk)
        out = self._data[self._pos : self._pos + size]
        self._pos += len(out)
        return out


# A sparse bundle Info.plist, as written by hdiutil.
SPARSE_BUNDLE_XML = xml_plist(
    """
<dict>
	<key>CFBundleInfoDictionaryVersion</key>
	<string>6.0</string>
	<key>band-size</key>
	<integer>8388608</integer>
	<key>bundle-backingstore-version</key>
	<integer>1</integer>
	<key>diskimage-bundle-type</key>
	<string>com.apple.diskimage.sparsebundle</string>
	<key>size</key>
	<integer>4398046511104</integer>
</dict>
"""
)
