from __future__ import annotations

from typing import Iterable, TextIO

from .records import FileEntry


def format_entry(entry: FileEntry, with_version: bool = False) -> str:
    if with_version:
        return f"{entry.version} {entry.name}"
    return entry.name


def write_listing(entries: Iterable[FileEntry], stream: TextIO, with_version: bool = False) -> int:
    """One line per entry. Returns the number of lines written."""
    n = 0
    for e in entries:
        stream.write(format_entry(e, with_version) + "\n")
        n += 1
    return n
