from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, List, Optional, Sequence, Tuple

from .codec import ContentCodec
from .constants import DEFAULT_COMPRESS_LEVEL, HEADER_SIZE, U32_MAX
from .errors import InternalError, InvalidVersionKey, PackError
from .filetime import FileTimes, get_file_times
from .header import HeaderInfo, default_header_times, pack_header
from .pathutil import norm_path, relative_name
from .records import FileEntry, index_size_for, pack_entry_record, record_size


def parse_version_key(value) -> int:
    """Validate the pack-wide version key (also the keystream seed input)."""
    if isinstance(value, bool):
        raise InvalidVersionKey(f"Invalid version key: {value!r}")
    if isinstance(value, int):
        key = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidVersionKey(f"Invalid version key: {value!r}")
        key = int(text)
    if not 0 <= key <= U32_MAX:
        raise InvalidVersionKey(f"Version key out of range: {key}")
    return key


@dataclass(frozen=True)
class PackCursor:
    """Running write positions while assembling a container.

    ``index_off`` is absolute (file offset of the next index record);
    ``content_off`` is relative to the start of the content region.
    """

    index_off: int = HEADER_SIZE
    content_off: int = 0
    count: int = 0

    def advance(self, record_len: int, raw_size: int) -> "PackCursor":
        return PackCursor(self.index_off + record_len, self.content_off + raw_size, self.count + 1)


def iter_source_files(root: str) -> Iterator[Tuple[str, str]]:
    """Yield (archive name, filesystem path) for regular files under ``root``.

    Depth-first, pre-order, in directory listing order; no sorting is applied
    and the yielded order becomes the container order.
    """

    def _walk(d: str) -> Iterator[Tuple[str, str]]:
        with os.scandir(d) as it:
            entries = list(it)
        for de in entries:
            if de.is_dir(follow_symlinks=False):
                yield from _walk(de.path)
            elif de.is_file():
                yield relative_name(root, de.path), de.path

    if not os.path.isdir(root):
        raise NotADirectoryError(f"Source is not a directory: {root}")
    yield from _walk(root)


class ContainerWriter:
    """Builds a container from a known, ordered list of entry names.

    The index size depends only on the names, so it is fixed up front. The
    header is written as a zero placeholder, each entry then places its index
    record and its payload by seeking, and ``finalize`` rewrites the header
    with the final sizes.
    """

    def __init__(
        self,
        out_path: str,
        version,
        names: Sequence[str],
        *,
        level: Optional[int] = None,
        header_times: Optional[Tuple[int, int]] = None,
    ):
        self.out_path = out_path
        self.version = parse_version_key(version)
        self.names: List[str] = [norm_path(n) for n in names]
        self.level = DEFAULT_COMPRESS_LEVEL if level is None else level
        if not -1 <= self.level <= 9:
            raise ValueError(f"Compression level must be 0-9: {self.level}")
        self.header_times = header_times
        self.index_size = index_size_for(self.names)
        self.content_start = HEADER_SIZE + self.index_size
        self.entries: List[FileEntry] = []
        self.cursor = PackCursor()
        self.codec = ContentCodec(self.version, self.level)
        self.f: Optional[BinaryIO] = None
        self.finalized = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        self.f = open(self.out_path, "wb")
        self.f.write(b"\x00" * HEADER_SIZE)

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def add_file(self, name: str, fs_path: str) -> FileEntry:
        """Pack a filesystem file; timestamps come from its metadata."""
        with open(fs_path, "rb") as fh:
            data = fh.read()
        return self.add_bytes(name, data, times=get_file_times(fs_path))

    def add_bytes(self, name: str, data: bytes, times: Optional[FileTimes] = None) -> FileEntry:
        if self.f is None:
            raise InternalError("Container not open")
        if self.finalized:
            raise InternalError("Container already finalized", entry=name)
        name = norm_path(name)
        pos = self.cursor.count
        if pos >= len(self.names) or self.names[pos] != name:
            expected = self.names[pos] if pos < len(self.names) else None
            raise InternalError(f"Entry out of order: expected {expected!r}", entry=name)
        try:
            payload, uncompressed_size = self.codec.encode(data)
        except PackError as exc:
            raise exc.with_entry(name)
        entry = FileEntry(
            name=name,
            version=self.version,
            offset=self.cursor.content_off,
            raw_size=len(payload),
            uncompressed_size=uncompressed_size,
        )
        if self.cursor.content_off + entry.raw_size > U32_MAX or entry.uncompressed_size > U32_MAX:
            raise PackError("Container content exceeds 4 GiB", entry=name)
        record = pack_entry_record(entry, times)
        if len(record) != record_size(name):
            raise InternalError("Record size differs from planned size", entry=name)
        self.f.seek(self.cursor.index_off)
        self.f.write(record)
        self.f.seek(self.content_start + self.cursor.content_off)
        self.f.write(payload)
        self.cursor = self.cursor.advance(len(record), entry.raw_size)
        self.entries.append(entry)
        return entry

    def finalize(self) -> HeaderInfo:
        if self.f is None:
            raise InternalError("Container not open")
        if self.finalized:
            raise InternalError("Container already finalized")
        if self.cursor.count != len(self.names):
            raise InternalError(f"Only {self.cursor.count} of {len(self.names)} entries written")
        if self.cursor.index_off != self.content_start:
            raise InternalError("Index region size does not match the planned size")
        self.f.seek(0, os.SEEK_END)
        content_size = self.f.tell() - self.content_start
        if content_size != self.cursor.content_off:
            raise InternalError("Content region size does not match the sum of entry sizes")
        header = HeaderInfo(
            content_version=self.version,
            file_count=len(self.names),
            index_size=self.index_size,
            content_size=content_size,
        )
        times = self.header_times if self.header_times is not None else default_header_times()
        self.f.seek(0)
        self.f.write(pack_header(header, times))
        self.f.flush()
        self.finalized = True
        return header


def pack_entries(out_path: str, items: Iterable[Tuple[str, bytes]], version, *, level: Optional[int] = None) -> HeaderInfo:
    """Pack in-memory (name, bytes) pairs in the given order."""
    items = list(items)
    with ContainerWriter(out_path, version, [n for n, _ in items], level=level) as w:
        for name, data in items:
            w.add_bytes(name, data)
        return w.finalize()


def pack_folder(input_folder: str, out_path: str, version, *, level: Optional[int] = None) -> HeaderInfo:
    """Pack every regular file under ``input_folder`` in traversal order."""
    version = parse_version_key(version)
    files = list(iter_source_files(input_folder))
    with ContainerWriter(out_path, version, [n for n, _ in files], level=level) as w:
        for name, fs_path in files:
            w.add_file(name, fs_path)
        return w.finalize()
