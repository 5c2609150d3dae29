from __future__ import annotations

import os
import struct
import time
from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple

from .constants import (
    HEADER_COUNTS_OFFSET,
    HEADER_SIZE,
    HEADER_TAG,
    HEADER_TAG_OFFSET,
    PACK_FORMAT_VERSION,
    PACK_MAGIC,
    U32_MAX,
)
from .errors import FileCountMismatch, FormatError, HeaderMagicError
from .filetime import unix_to_filetime


_HEADER_PREFIX = "<IIII QQ"
_HEADER_STRUCT = struct.Struct(f"{_HEADER_PREFIX} {HEADER_COUNTS_OFFSET - HEADER_TAG_OFFSET}s IIII 16s")
# Fields (little endian):
# magic u32, format_version u32, content_version u32, file_count u32,
# created/written FILETIME u64 x2 (informational),
# tag ("data\\" then zeros, from HEADER_TAG_OFFSET up to HEADER_COUNTS_OFFSET),
# file_count u32 (repeat), index_size u32, reserved u32, content_size u32,
# reserved[16]
assert struct.calcsize(_HEADER_PREFIX) == HEADER_TAG_OFFSET
assert _HEADER_STRUCT.size == HEADER_SIZE


@dataclass
class HeaderInfo:
    content_version: int
    file_count: int
    index_size: int
    content_size: int
    format_version: int = PACK_FORMAT_VERSION
    filetimes: Tuple[int, int] = (0, 0)

    @property
    def content_start(self) -> int:
        return HEADER_SIZE + self.index_size


def default_header_times() -> Tuple[int, int]:
    """Timestamp pair for a new header: current time on Windows, zeros elsewhere."""
    if os.name != "nt":
        return 0, 0
    now = unix_to_filetime(time.time())
    return now, now


def pack_header(info: HeaderInfo, filetimes: Optional[Tuple[int, int]] = None) -> bytes:
    for field_name in ("content_version", "file_count", "index_size", "content_size"):
        value = getattr(info, field_name)
        if not 0 <= value <= U32_MAX:
            raise ValueError(f"{field_name} out of u32 range: {value}")
    t0, t1 = filetimes if filetimes is not None else info.filetimes
    return _HEADER_STRUCT.pack(
        PACK_MAGIC,
        PACK_FORMAT_VERSION,
        info.content_version,
        info.file_count,
        t0,
        t1,
        HEADER_TAG,
        info.file_count,
        info.index_size,
        0,  # reserved
        info.content_size,
        b"\x00" * 16,
    )


def unpack_header(raw: bytes) -> HeaderInfo:
    if len(raw) != HEADER_SIZE:
        raise FormatError(f"Header too short ({len(raw)} of {HEADER_SIZE} bytes)")
    (magic, fmt, cver, count, t0, t1, _tag, count2, index_size, _res, content_size, _pad) = _HEADER_STRUCT.unpack(raw)
    if magic != PACK_MAGIC:
        raise HeaderMagicError(f"Bad pack magic 0x{magic:08x}")
    if fmt != PACK_FORMAT_VERSION:
        raise HeaderMagicError(f"Unsupported pack format 0x{fmt:x}")
    if count2 != count:
        raise FileCountMismatch(f"File count mismatch in header ({count} != {count2})")
    return HeaderInfo(
        content_version=cver,
        file_count=count,
        index_size=index_size,
        content_size=content_size,
        format_version=fmt,
        filetimes=(t0, t1),
    )


def read_header(f: BinaryIO) -> HeaderInfo:
    f.seek(0)
    return unpack_header(f.read(HEADER_SIZE))
