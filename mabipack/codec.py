from __future__ import annotations

import zlib
from typing import Optional, Tuple

from .constants import DEFAULT_COMPRESS_LEVEL
from .errors import CorruptedContentError
from .keystream import obfuscate


class ContentCodec:
    """Per-entry content transform.

    Pack: raw -> zlib -> keystream XOR. Extract runs the steps in reverse and
    checks the decompressed size against the index. Every entry is
    transformed on its own; nothing is shared between entries.
    """

    def __init__(self, version: int, level: Optional[int] = None):
        self.version = version
        self.level = DEFAULT_COMPRESS_LEVEL if level is None else level

    def encode(self, data: bytes) -> Tuple[bytes, int]:
        """Returns (stored payload, uncompressed size)."""
        compressed = zlib.compress(data, self.level)
        return obfuscate(compressed, self.version), len(data)

    def decode(self, payload: bytes, uncompressed_size: int) -> bytes:
        compressed = obfuscate(payload, self.version)
        try:
            raw = zlib.decompress(compressed)
        except zlib.error as exc:
            raise CorruptedContentError(f"zlib decompression failed: {exc}")
        if len(raw) != uncompressed_size:
            raise CorruptedContentError(
                f"Decompressed size {len(raw)} does not match recorded size {uncompressed_size}"
            )
        return raw
