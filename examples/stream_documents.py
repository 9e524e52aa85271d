"""Decode a stream of concatenated plist documents.

Tools such as ``ioreg -a`` or a log collector may emit several XML plists
back to back. ``Decoder`` reads them one at a time.

Usage::

    ioreg -a -l -c IOUSBHostDevice | python examples/stream_documents.py
"""

import sys

from plist_py import Decoder, EndOfInput, ParseError, serialize


def main() -> None:
    """Echo each document on stdin as one line of JSON."""
    decoder = Decoder(sys.stdin.buffer)
    while True:
        try:
            value = decoder.decode()
        except EndOfInput:
            break
        except ParseError as e:
            print(f"skipping malformed document: {e}", file=sys.stderr)
            continue
        print(serialize(value).decode())


if __name__ == "__main__":
    main()
