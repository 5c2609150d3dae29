from __future__ import annotations

import os

from .errors import PathResolutionError


def norm_path(p: str) -> str:
    """Normalize archive names to the internal forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments and empty names
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise PathResolutionError(f"Path may not contain '..': {p}")
    if not parts:
        raise PathResolutionError("Empty archive path")
    return "/".join(parts)


def to_disk_name(name: str) -> str:
    """Archive names are stored with backslash separators."""
    name = name.replace("/", "\\")
    if os.sep != "\\":
        name = name.replace(os.sep, "\\")
    return name


def from_disk_name(name: str) -> str:
    return name.replace("\\", "/")


def relative_name(root: str, full_path: str) -> str:
    """Archive name of ``full_path`` relative to the input ``root``."""
    root_abs = os.path.abspath(root)
    full_abs = os.path.abspath(full_path)
    try:
        common = os.path.commonpath([root_abs, full_abs])
    except ValueError:
        common = ""
    if common != root_abs or full_abs == root_abs:
        raise PathResolutionError(f"{full_path} is not inside {root}")
    rel = os.path.relpath(full_abs, root_abs)
    return norm_path(rel.replace(os.sep, "/"))


def resolve_output_path(out_root: str, name: str) -> str:
    """Join an archive name under ``out_root``, refusing names that escape it."""
    if name.startswith("/") or (len(name) > 1 and name[1] == ":"):
        raise PathResolutionError(f"Absolute archive path: {name}")
    rel = norm_path(name)
    dst = os.path.join(out_root or ".", *rel.split("/"))
    root_abs = os.path.abspath(out_root or ".")
    if os.path.commonpath([root_abs, os.path.abspath(dst)]) != root_abs:
        raise PathResolutionError(f"Archive path escapes output directory: {name}")
    return dst
