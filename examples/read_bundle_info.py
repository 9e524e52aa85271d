"""Decode an application bundle's Info.plist into a dataclass.

Usage::

    python examples/read_bundle_info.py /Applications/Safari.app/Contents/Info.plist
"""

import logging
import sys
from dataclasses import dataclass

from plist_py import DecoderConfig, plist_field, unmarshal

# Use DEBUG to see resolved records and skipped keys
logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")


@dataclass
class BundleInfo:
    identifier: str = plist_field("CFBundleIdentifier", default="")
    name: str = plist_field("CFBundleName", default="")
    version: str = plist_field("CFBundleShortVersionString", default="")
    executable: str = plist_field("CFBundleExecutable", default="")
    document_types: list[dict[str, object]] = plist_field(
        "CFBundleDocumentTypes", default_factory=list
    )


def main() -> None:
    """Print the identity of the bundle whose Info.plist is given."""
    with open(sys.argv[1], "rb") as f:
        data = f.read()

    # Info.plist files carry many keys; only map the ones declared above
    info = unmarshal(data, BundleInfo, config=DecoderConfig(strict=False))
    print(f"{info.name} ({info.identifier}) {info.version}")
    print(f"Executable: {info.executable}")
    print(f"Document types: {len(info.document_types)}")


if __name__ == "__main__":
    main()
