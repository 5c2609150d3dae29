from __future__ import annotations

import os
import re
from typing import BinaryIO, Iterable, List, Optional, Pattern

from .codec import ContentCodec
from .constants import HEADER_SIZE
from .errors import CorruptedContentError, InvalidFilterError, PackError
from .header import HeaderInfo, read_header
from .pathutil import resolve_output_path
from .records import FileEntry, read_index


def compile_filters(patterns: Optional[Iterable[str]]) -> List[Pattern[str]]:
    compiled: List[Pattern[str]] = []
    for p in patterns or ():
        try:
            compiled.append(re.compile(p))
        except re.error as exc:
            raise InvalidFilterError(f"Invalid filter {p!r}: {exc}")
    return compiled


def matches_filters(name: str, filters: List[Pattern[str]]) -> bool:
    """No filters selects everything; otherwise any pattern found in the name."""
    return not filters or any(rx.search(name) for rx in filters)


class ContainerReader:
    def __init__(self, path: str):
        self.path = path
        self.f: Optional[BinaryIO] = None
        self.header: Optional[HeaderInfo] = None
        self.entries: List[FileEntry] = []

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        self.f = open(self.path, "rb")
        try:
            self.header = read_header(self.f)
            self.entries = read_index(self.f, self.header)
        except (PackError, OSError) as exc:
            self.close()
            raise exc

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def list(self) -> List[FileEntry]:
        return self.entries

    def select(self, patterns: Optional[Iterable[str]] = None) -> List[FileEntry]:
        filters = compile_filters(patterns)
        return [e for e in self.entries if matches_filters(e.name, filters)]

    def read_entry(self, entry: FileEntry) -> bytes:
        """Seek to the entry payload, undo the keystream and decompress."""
        if self.f is None or self.header is None:
            raise RuntimeError("Container not open")
        self.f.seek(HEADER_SIZE + self.header.index_size + entry.offset)
        payload = self.f.read(entry.raw_size)
        if len(payload) != entry.raw_size:
            raise CorruptedContentError(
                f"Content truncated ({len(payload)} of {entry.raw_size} bytes)", entry=entry.name
            )
        try:
            return ContentCodec(entry.version).decode(payload, entry.uncompressed_size)
        except PackError as exc:
            raise exc.with_entry(entry.name)

    def extract(self, entry: FileEntry, out_root: str) -> str:
        """Write one entry under ``out_root``, creating directories as needed."""
        try:
            dst = resolve_output_path(out_root, entry.name)
        except PackError as exc:
            raise exc.with_entry(entry.name)
        data = self.read_entry(entry)
        os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
        with open(dst, "wb") as wf:
            wf.write(data)
        return dst


def extract_all(pack_path: str, out_dir: str, patterns: Optional[Iterable[str]] = None) -> List[str]:
    """Extract entries matching any of ``patterns`` (all when empty)."""
    filters = compile_filters(patterns)
    written: List[str] = []
    with ContainerReader(pack_path) as r:
        for e in r.list():
            if matches_filters(e.name, filters):
                written.append(r.extract(e, out_dir))
    return written
