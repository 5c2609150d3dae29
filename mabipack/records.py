from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Tuple

from .constants import HEADER_SIZE, RECORD_FLAG, RECORD_TAIL_SIZE, TIMESTAMP_BLOCK_SIZE
from .errors import IndexTruncatedError, PackError
from .filetime import FileTimes, pack_times_block, unpack_times_block
from .header import HeaderInfo
from .strblock import encode_str_block, read_str_block, str_block_size


# Record tail (fixed 0x40 bytes), after the name string block:
# struct: <I I I I I I
#  - version u32 (keystream seed input)
#  - reserved u32
#  - offset u32 (into the content region)
#  - raw_size u32 (stored bytes)
#  - uncompressed_size u32
#  - flag u32 (always 1)
# followed by the 40-byte timestamp block.
_TAIL_STRUCT = struct.Struct("<IIIIII")
assert _TAIL_STRUCT.size + TIMESTAMP_BLOCK_SIZE == RECORD_TAIL_SIZE


@dataclass
class FileEntry:
    name: str
    version: int
    offset: int
    raw_size: int
    uncompressed_size: int
    flag: int = RECORD_FLAG
    filetimes: Optional[Tuple[int, ...]] = None


def record_size(name: str) -> int:
    return str_block_size(name) + RECORD_TAIL_SIZE


def index_size_for(names) -> int:
    return sum(record_size(n) for n in names)


def pack_entry_record(entry: FileEntry, times: Optional[FileTimes] = None) -> bytes:
    return (
        encode_str_block(entry.name)
        + _TAIL_STRUCT.pack(entry.version, 0, entry.offset, entry.raw_size, entry.uncompressed_size, RECORD_FLAG)
        + pack_times_block(times)
    )


def _read_exact(f: BinaryIO, n: int, what: str) -> bytes:
    b = f.read(n)
    if len(b) != n:
        raise IndexTruncatedError(f"Index ends inside {what}")
    return b


def read_entry_record(f: BinaryIO) -> FileEntry:
    name, _ = read_str_block(f)
    try:
        version, _res, offset, raw_size, uncompressed_size, flag = _TAIL_STRUCT.unpack(
            _read_exact(f, _TAIL_STRUCT.size, "record tail")
        )
        times = unpack_times_block(_read_exact(f, TIMESTAMP_BLOCK_SIZE, "timestamp block"))
    except PackError as exc:
        raise exc.with_entry(name)
    return FileEntry(
        name=name,
        version=version,
        offset=offset,
        raw_size=raw_size,
        uncompressed_size=uncompressed_size,
        flag=flag,
        filetimes=times,
    )


def parse_index(buf: bytes, file_count: int) -> List[FileEntry]:
    """Decode ``file_count`` records from an index buffer."""
    f = io.BytesIO(buf)
    entries: List[FileEntry] = []
    for _ in range(file_count):
        entries.append(read_entry_record(f))
    return entries


def read_index(f: BinaryIO, header: HeaderInfo) -> List[FileEntry]:
    """Read the whole index in one block from directly after the header."""
    f.seek(HEADER_SIZE)
    buf = f.read(header.index_size)
    if len(buf) != header.index_size:
        raise IndexTruncatedError(f"Index region truncated ({len(buf)} of {header.index_size} bytes)")
    return parse_index(buf, header.file_count)
