"""Decoder configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DecoderConfig:
    """Configuration for a plist decoder."""

    strict: bool = True
    """Reject dict keys that have no matching record field."""

    max_depth: int = 256
    """Maximum array/dict nesting accepted from a document."""

    read_size: int = 65536
    """Bytes requested from the source per read."""

    max_document_size: int = 64 * 1024 * 1024
    """Upper bound on the size of a single document, in bytes."""

    max_nodes: int = 1 << 20
    """Upper bound on the values a binary document expands to once shared
    object references are followed."""

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            msg = f"max_depth must be >= 1, got {self.max_depth}"
            raise ValueError(msg)
        if self.read_size < 1:
            msg = f"read_size must be >= 1, got {self.read_size}"
            raise ValueError(msg)
        if self.max_document_size < 1:
            msg = f"max_document_size must be >= 1, got {self.max_document_size}"
            raise ValueError(msg)
        if self.max_nodes < 1:
            msg = f"max_nodes must be >= 1, got {self.max_nodes}"
            raise ValueError(msg)


DEFAULT_CONFIG = DecoderConfig()
