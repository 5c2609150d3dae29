from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Optional

from .constants import FILETIME_TICKS_PER_MS, FILETIME_UNIX_EPOCH, TIMESTAMP_BLOCK_SIZE


_TIMES_STRUCT = struct.Struct("<5Q")
assert _TIMES_STRUCT.size == TIMESTAMP_BLOCK_SIZE


@dataclass
class FileTimes:
    created: float
    accessed: float
    modified: float


def unix_to_filetime(seconds: float) -> int:
    """Unix seconds -> Windows FILETIME, millisecond precision."""
    millis = int(seconds * 1000)
    return millis * FILETIME_TICKS_PER_MS + FILETIME_UNIX_EPOCH


def filetime_to_unix(ft: int) -> float:
    return (ft - FILETIME_UNIX_EPOCH) / (FILETIME_TICKS_PER_MS * 1000.0)


def get_file_times(path: str) -> FileTimes:
    """Collect creation/access/modification times for ``path``.

    Creation time comes from ``st_birthtime`` where the platform has it and
    from ``st_ctime`` on Windows; otherwise the modification time is reused.
    """
    st = os.stat(path)
    created: Optional[float] = getattr(st, "st_birthtime", None)
    if created is None and os.name == "nt":
        created = st.st_ctime
    if created is None:
        created = st.st_mtime
    return FileTimes(created=created, accessed=st.st_atime, modified=st.st_mtime)


def pack_times_block(times: Optional[FileTimes]) -> bytes:
    """Five FILETIMEs: created, created, accessed, modified, modified."""
    if times is None:
        return b"\x00" * TIMESTAMP_BLOCK_SIZE
    c = unix_to_filetime(times.created)
    a = unix_to_filetime(times.accessed)
    m = unix_to_filetime(times.modified)
    return _TIMES_STRUCT.pack(c, c, a, m, m)


def unpack_times_block(raw: bytes):
    return _TIMES_STRUCT.unpack(raw)
