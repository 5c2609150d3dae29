from __future__ import annotations

import os
import sys
import time
import argparse

from typing import List, Optional

from mabipack.errors import PackError, FormatError
from mabipack.listing import write_listing
from mabipack.reader import ContainerReader, compile_filters, matches_filters
from mabipack.writer import ContainerWriter, iter_source_files, parse_version_key


def _throughput(nbytes: int, t0: float) -> tuple[float, float, float]:
    dt = max(0.000001, time.time() - t0)
    mib = nbytes / (1024.0 * 1024.0)
    return mib, dt, mib / dt


def cmd_pack(input_folder: str, output: str, version_key: str, *, level: Optional[int] = None, quiet: bool = False) -> bool:
    """Pack a folder into a new .pack file.

    Args:
        input_folder: Directory whose regular files are stored (recursively).
        output: Path of the .pack file to create.
        version_key: Numeric version; stored on every entry and used as keystream seed.
        level: zlib compression level (default 6).
    """
    version = parse_version_key(version_key)
    files = list(iter_source_files(input_folder))
    total = len(files)
    processed = 0
    t0 = time.time()
    with ContainerWriter(output, version, [n for n, _ in files], level=level) as w:
        for i, (name, fs_path) in enumerate(files, 1):
            entry = w.add_file(name, fs_path)
            processed += entry.uncompressed_size
            if not quiet:
                print(f"  packing: {i:>4}/{total:<4} {name}")
        header = w.finalize()

    mib, dt, mbps = _throughput(processed, t0)
    print(
        f"Done: {total} files; {mib:.2f} MiB -> {header.content_size} bytes stored "
        f"in {dt:.1f}s; {mbps:.2f} MiB/s; version={version}"
    )
    return True


def cmd_extract(archive: str, outdir: str, *, filters: Optional[List[str]] = None, quiet: bool = False) -> bool:
    """Extract entries (optionally only those matching any regex) into outdir."""
    compiled = compile_filters(filters)
    with ContainerReader(archive) as r:
        entries = [e for e in r.list() if matches_filters(e.name, compiled)]
        total = len(entries)
        t0 = time.time()
        processed = 0
        for i, e in enumerate(entries, 1):
            if not quiet:
                print(f" extracting: {i:>4}/{total:<4} {e.name}")
            r.extract(e, outdir)
            processed += e.uncompressed_size
        skipped = len(r.list()) - total
    mib, dt, mbps = _throughput(processed, t0)
    print(f"Done: extracted {total} files ({mib:.2f} MiB) in {dt:.1f}s; {mbps:.2f} MiB/s; skipped={skipped}")
    return True


def cmd_list(archive: str, *, output: Optional[str] = None, with_version: bool = False) -> bool:
    """Write the entry names (optionally prefixed by version) to stdout or a file."""
    with ContainerReader(archive) as r:
        entries = r.list()
    if output:
        with open(output, "w", encoding="utf-8", newline="\n") as fh:
            write_listing(entries, fh, with_version=with_version)
    else:
        write_listing(entries, sys.stdout, with_version=with_version)
    return True


def cmd_info(archive: str) -> bool:
    """Print header details; returns False if the file disagrees with its header."""
    with ContainerReader(archive) as r:
        h = r.header
        entries = r.list()
    print(f"Pack: {archive}")
    print(f"  Format: 0x{h.format_version:x}")
    print(f"  Version: {h.content_version}")
    print(f"  Entries: {h.file_count}")
    print(f"  Index size: {h.index_size}")
    print(f"  Content size: {h.content_size}")
    print(f"  Uncompressed total: {sum(e.uncompressed_size for e in entries)}")
    ok = True
    versions = sorted({e.version for e in entries})
    if len(versions) > 1:
        print(f"Warning: entries carry {len(versions)} different versions", file=sys.stderr)
        ok = False
    end = os.path.getsize(archive)
    expected = h.content_start + h.content_size
    if end != expected:
        print(f"Warning: file is {end} bytes, header describes {expected}", file=sys.stderr)
        ok = False
    return ok


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="mabipack",
        description="Pack, extract and list .pack containers",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Create a pack")
    ap_pack.add_argument("-i", "--input", required=True, metavar="FOLDER", help="Input folder to pack")
    ap_pack.add_argument("-o", "--output", required=True, metavar="PACK_NAME", help="Output .pack file name")
    ap_pack.add_argument(
        "-k", "--key-version", required=True, metavar="VER_KEY", help="Version of every entry (also used as a seed)"
    )
    ap_pack.add_argument("--level", type=int, choices=range(0, 10), default=None, metavar="0-9", help="zlib level (default 6)")
    ap_pack.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_extract = sub.add_parser("extract", help="Extract a pack")
    ap_extract.add_argument("-i", "--input", required=True, metavar="PACK_NAME", help="Pack to extract")
    ap_extract.add_argument("-o", "--output", required=True, metavar="FOLDER", help="Output folder")
    ap_extract.add_argument(
        "-f",
        "--filter",
        action="append",
        default=[],
        metavar="REGEX",
        help="Only extract names matching REGEX; repeat for OR",
    )
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", help="Output the file list of a pack")
    ap_list.add_argument("-i", "--input", required=True, metavar="PACK_NAME", help="Pack to list")
    ap_list.add_argument("-o", "--output", metavar="LIST_FILE_NAME", help="List file name (stdout if not set)")
    ap_list.add_argument("--with-version", action="store_true", help="Print the version of every file")

    ap_info = sub.add_parser("info", help="Show pack header information")
    ap_info.add_argument("-i", "--input", required=True, metavar="PACK_NAME", help="Pack path")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "pack":
            success = cmd_pack(args.input, args.output, args.key_version, level=args.level, quiet=args.quiet)
        elif args.cmd == "extract":
            success = cmd_extract(args.input, args.output, filters=args.filter, quiet=args.quiet)
        elif args.cmd == "list":
            success = cmd_list(args.input, output=args.output, with_version=args.with_version)
        elif args.cmd == "info":
            success = cmd_info(args.input)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except FormatError as e:
        print(f"Error: not a valid pack file: {e}", file=sys.stderr)
        sys.exit(2)
    except (PackError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
