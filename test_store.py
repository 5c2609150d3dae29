from __future__ import annotations

import io
import os
import struct
import tempfile
import unittest
import zlib
from pathlib import Path

from mabipack.constants import HEADER_SIZE
from mabipack.errors import (
    CorruptedContentError,
    FileCountMismatch,
    InternalError,
    InvalidFilterError,
    InvalidVersionKey,
    PathResolutionError,
)
from mabipack.keystream import obfuscate
from mabipack.listing import write_listing
from mabipack.pathutil import norm_path, relative_name, resolve_output_path
from mabipack.reader import ContainerReader, compile_filters, extract_all
from mabipack.records import FileEntry
from mabipack.writer import (
    ContainerWriter,
    PackCursor,
    iter_source_files,
    pack_entries,
    pack_folder,
    parse_version_key,
)


def _create_sample_files(base: Path):
    (base / "docs").mkdir()
    (base / "docs" / "a.txt").write_text("hello world\n" * 50, encoding="utf-8")
    (base / "docs" / "b.bin").write_bytes(os.urandom(4096))
    (base / "docs" / "deeper").mkdir()
    (base / "docs" / "deeper" / "c.dat").write_bytes(b"")
    (base / "notes.md").write_text("# Title\nSome content\n", encoding="utf-8")
    (base / ("long_" + "n" * 120 + ".txt")).write_bytes(b"long name")


def _read_tree(root: Path):
    out = {}
    for dirpath, _dirs, files in os.walk(root):
        for fn in files:
            full = Path(dirpath) / fn
            out[full.relative_to(root).as_posix()] = full.read_bytes()
    return out


class ContainerTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_single_file_scenario(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "one.pack"
            pack_entries(str(pack), [("a/b.txt", b"hello")], 7)
            raw = pack.read_bytes()
            self.assertEqual(struct.unpack_from("<I", raw, 0x0C)[0], 1)
            self.assertEqual(struct.unpack_from("<I", raw, 0x08)[0], 7)
            index_size = struct.unpack_from("<I", raw, 0x204)[0]
            self.assertEqual(index_size, 16 + 0x40)
            self.assertEqual(raw[HEADER_SIZE:HEADER_SIZE + 16], b"\x00a\\b.txt" + b"\x00" * 8)
            stored = obfuscate(zlib.compress(b"hello", 6), 7)
            self.assertEqual(raw[HEADER_SIZE + index_size:], stored)
            self.assertEqual(struct.unpack_from("<I", raw, 0x20C)[0], len(stored))

            with ContainerReader(str(pack)) as r:
                entries = r.list()
                self.assertEqual([e.name for e in entries], ["a/b.txt"])
                self.assertEqual(r.read_entry(entries[0]), b"hello")
                out = io.StringIO()
                write_listing(entries, out)
                self.assertEqual(out.getvalue(), "a/b.txt\n")
                out = io.StringIO()
                write_listing(entries, out, with_version=True)
                self.assertEqual(out.getvalue(), "7 a/b.txt\n")

            written = extract_all(str(pack), str(tmp_path / "out"))
            self.assertEqual(len(written), 1)
            self.assertEqual((tmp_path / "out" / "a" / "b.txt").read_bytes(), b"hello")

        self.run_with_tmpdir(scenario)

    def test_folder_roundtrip(self):
        def scenario(tmp_path: Path):
            src = tmp_path / "src"
            src.mkdir()
            _create_sample_files(src)
            pack = tmp_path / "data.pack"
            header = pack_folder(str(src), str(pack), "1234")
            self.assertEqual(header.file_count, 5)
            self.assertEqual(os.path.getsize(pack), HEADER_SIZE + header.index_size + header.content_size)

            with ContainerReader(str(pack)) as r:
                entries = r.list()
                expected_off = 0
                for e in entries:
                    self.assertEqual(e.offset, expected_off)
                    self.assertEqual(e.version, 1234)
                    self.assertEqual(e.flag, 1)
                    self.assertNotEqual(e.filetimes, (0, 0, 0, 0, 0))
                    expected_off += e.raw_size
                self.assertEqual(expected_off, r.header.content_size)
                # container order is traversal order
                self.assertEqual([e.name for e in entries], [n for n, _ in iter_source_files(str(src))])

            out = tmp_path / "out"
            extract_all(str(pack), str(out))
            self.assertEqual(_read_tree(out), _read_tree(src))

        self.run_with_tmpdir(scenario)

    def test_entries_independent_of_order(self):
        def scenario(tmp_path: Path):
            items = [(f"f{i}.bin", os.urandom(100 + i)) for i in range(6)]
            pack = tmp_path / "p.pack"
            pack_entries(str(pack), items, 5)
            with ContainerReader(str(pack)) as r:
                for e in reversed(r.list()):
                    self.assertEqual(r.read_entry(e), dict(items)[e.name])

        self.run_with_tmpdir(scenario)

    def test_empty_container(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "empty.pack"
            header = pack_entries(str(pack), [], 0)
            self.assertEqual((header.file_count, header.index_size, header.content_size), (0, 0, 0))
            self.assertEqual(os.path.getsize(pack), HEADER_SIZE)
            with ContainerReader(str(pack)) as r:
                self.assertEqual(r.list(), [])

        self.run_with_tmpdir(scenario)

    def test_filter_scenario(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "f.pack"
            pack_entries(str(pack), [("x.txt", b"x"), ("y.dat", b"y")], 1)
            out = tmp_path / "out"
            extract_all(str(pack), str(out), [r"\.txt$"])
            self.assertEqual(sorted(p.name for p in out.iterdir()), ["x.txt"])
            with ContainerReader(str(pack)) as r:
                self.assertEqual([e.name for e in r.select([r"^y", r"nothing"])], ["y.dat"])
                self.assertEqual(len(r.select([])), 2)

        self.run_with_tmpdir(scenario)

    def test_redundant_count_rejected(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "c.pack"
            pack_entries(str(pack), [("x.txt", b"x")], 1)
            with open(pack, "r+b") as fh:
                fh.seek(0x200)
                fh.write(struct.pack("<I", 2))
                # garbage index: must not be reached
                fh.seek(HEADER_SIZE)
                fh.write(b"\xff" * 16)
            with self.assertRaises(FileCountMismatch):
                ContainerReader(str(pack)).open()

        self.run_with_tmpdir(scenario)

    def test_truncated_content_detected(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "t.pack"
            pack_entries(str(pack), [("a.txt", b"a" * 300), ("b.txt", os.urandom(300))], 3)
            size = os.path.getsize(pack)
            with open(pack, "r+b") as fh:
                fh.truncate(size - 1)
            with ContainerReader(str(pack)) as r:
                first, last = r.list()
                self.assertEqual(r.read_entry(first), b"a" * 300)
                with self.assertRaises(CorruptedContentError) as ctx:
                    r.read_entry(last)
                self.assertEqual(ctx.exception.entry, "b.txt")
            with self.assertRaises(CorruptedContentError):
                extract_all(str(pack), str(tmp_path / "out"))

        self.run_with_tmpdir(scenario)

    def test_flipped_content_detected(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "t.pack"
            header = pack_entries(str(pack), [("a.txt", b"abc" * 400)], 3)
            with open(pack, "r+b") as fh:
                fh.seek(HEADER_SIZE + header.index_size + 4)
                b = fh.read(1)
                fh.seek(-1, os.SEEK_CUR)
                fh.write(bytes([b[0] ^ 0x5A]))
            with ContainerReader(str(pack)) as r:
                with self.assertRaises(CorruptedContentError):
                    r.read_entry(r.list()[0])

        self.run_with_tmpdir(scenario)

    def test_recorded_size_mismatch(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "t.pack"
            pack_entries(str(pack), [("a.txt", b"abc")], 3)
            with open(pack, "r+b") as fh:
                # uncompressed_size lives 16 bytes into the record tail
                fh.seek(HEADER_SIZE + 16 + 16)
                fh.write(struct.pack("<I", 4))
            with ContainerReader(str(pack)) as r:
                with self.assertRaises(CorruptedContentError):
                    r.read_entry(r.list()[0])

        self.run_with_tmpdir(scenario)

    def test_writer_rejects_out_of_plan_entries(self):
        def scenario(tmp_path: Path):
            with ContainerWriter(str(tmp_path / "w.pack"), 1, ["a", "b"]) as w:
                with self.assertRaises(InternalError):
                    w.add_bytes("b", b"1")
                w.add_bytes("a", b"1")
                with self.assertRaises(InternalError):
                    w.finalize()
                w.add_bytes("b", b"2")
                with self.assertRaises(InternalError):
                    w.add_bytes("c", b"3")
                header = w.finalize()
            self.assertEqual(header.file_count, 2)

        self.run_with_tmpdir(scenario)

    def test_writer_closed_after_finalize(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "done.pack"
            with ContainerWriter(str(pack), 1, ["a"]) as w:
                w.add_bytes("a", b"1")
                w.finalize()
                self.assertTrue(w.finalized)
                with self.assertRaises(InternalError) as ctx:
                    w.add_bytes("a", b"again")
                self.assertIn("finalized", str(ctx.exception))
                self.assertEqual(ctx.exception.entry, "a")
                with self.assertRaises(InternalError):
                    w.finalize()
            size = os.path.getsize(pack)
            with ContainerReader(str(pack)) as r:
                self.assertEqual([e.name for e in r.list()], ["a"])
                self.assertEqual(r.read_entry(r.list()[0]), b"1")
                self.assertEqual(HEADER_SIZE + r.header.index_size + r.header.content_size, size)

        self.run_with_tmpdir(scenario)

    def test_unsafe_names_not_extracted(self):
        def scenario(tmp_path: Path):
            pack = tmp_path / "evil.pack"
            with ContainerWriter(str(pack), 1, ["ok.txt"]) as w:
                w.add_bytes("ok.txt", b"fine")
                w.finalize()
            with ContainerReader(str(pack)) as r:
                bad = FileEntry(name="../escape.txt", **{k: getattr(r.list()[0], k) for k in ("version", "offset", "raw_size", "uncompressed_size")})
                with self.assertRaises(PathResolutionError) as ctx:
                    r.extract(bad, str(tmp_path / "out"))
                self.assertEqual(ctx.exception.entry, "../escape.txt")
            self.assertFalse((tmp_path / "escape.txt").exists())

        self.run_with_tmpdir(scenario)


class HelperTests(unittest.TestCase):
    def test_version_key(self):
        self.assertEqual(parse_version_key("7"), 7)
        self.assertEqual(parse_version_key(" 4294967295 "), 0xFFFFFFFF)
        for bad in ("abc", "-1", "1.5", "", "4294967296", True):
            with self.assertRaises(InvalidVersionKey):
                parse_version_key(bad)
        with self.assertRaises(ValueError):
            parse_version_key("x")

    def test_cursor_is_a_value(self):
        c0 = PackCursor()
        c1 = c0.advance(80, 13)
        self.assertEqual((c0.index_off, c0.content_off, c0.count), (HEADER_SIZE, 0, 0))
        self.assertEqual((c1.index_off, c1.content_off, c1.count), (HEADER_SIZE + 80, 13, 1))

    def test_filters(self):
        self.assertEqual(compile_filters(None), [])
        with self.assertRaises(InvalidFilterError):
            compile_filters(["("])

    def test_paths(self):
        self.assertEqual(norm_path("a\\b/./c/"), "a/b/c")
        for bad in ("../x", "a/../../x", "", "/"):
            with self.assertRaises(PathResolutionError):
                norm_path(bad)
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(relative_name(tmp, os.path.join(tmp, "d", "f.txt")), "d/f.txt")
            with self.assertRaises(PathResolutionError):
                relative_name(os.path.join(tmp, "d"), os.path.join(tmp, "e", "f.txt"))
            self.assertEqual(resolve_output_path(tmp, "d/f.txt"), os.path.join(tmp, "d", "f.txt"))
            with self.assertRaises(PathResolutionError):
                resolve_output_path(tmp, "/etc/passwd")


if __name__ == "__main__":
    unittest.main()
