from __future__ import annotations

import io
import struct
from typing import BinaryIO, Tuple

from .constants import STR_CLASSES, STR_CLASS_EXPLICIT
from .errors import StringBlockError
from .pathutil import from_disk_name, to_disk_name


# Block layout:
#  - class u8
#  - explicit length u32 (class 5 only; counts bytes after this field)
#  - name bytes, backslash separated, utf-8
#  - zero padding (at least one NUL)
_LEN_STRUCT = struct.Struct("<I")


def block_size_for(length: int) -> Tuple[int, int]:
    """Return (block size, class byte) for a name of ``length`` utf-8 bytes."""
    if length < 0:
        raise ValueError("length must be non-negative")
    for cls, (max_len, size) in enumerate(STR_CLASSES):
        if length <= max_len:
            return size, cls
    # Smallest multiple of 16 above length + 5, so a terminator always fits.
    return (length + 21) // 16 * 16, STR_CLASS_EXPLICIT


def str_block_size(name: str) -> int:
    return block_size_for(len(name.encode("utf-8")))[0]


def encode_str_block(name: str) -> bytes:
    raw = to_disk_name(name).encode("utf-8")
    size, cls = block_size_for(len(raw))
    out = bytearray([cls])
    if cls == STR_CLASS_EXPLICIT:
        out += _LEN_STRUCT.pack(size - 1 - _LEN_STRUCT.size)
    out += raw
    out += b"\x00" * (size - len(out))
    return bytes(out)


def _payload_len(cls: int, f: BinaryIO) -> int:
    if cls < len(STR_CLASSES) - 1:
        return (cls + 1) * 16 - 1
    if cls == len(STR_CLASSES) - 1:
        return STR_CLASSES[-1][1] - 1
    if cls == STR_CLASS_EXPLICIT:
        raw = f.read(_LEN_STRUCT.size)
        if len(raw) != _LEN_STRUCT.size:
            raise StringBlockError("String block length field truncated")
        return _LEN_STRUCT.unpack(raw)[0]
    raise StringBlockError(f"Unknown string block class {cls}")


def read_str_block(f: BinaryIO) -> Tuple[str, int]:
    """Read one string block from ``f``.

    Returns (name, bytes consumed). The name is returned in forward-slash form.
    """
    lead = f.read(1)
    if not lead:
        raise StringBlockError("String block truncated")
    cls = lead[0]
    n = _payload_len(cls, f)
    payload = f.read(n)
    if len(payload) != n:
        raise StringBlockError("String block truncated")
    consumed = 1 + (_LEN_STRUCT.size if cls == STR_CLASS_EXPLICIT else 0) + n
    return decode_c_str(payload), consumed


def decode_c_str(payload: bytes) -> str:
    end = payload.find(b"\x00")
    if end < 0:
        raise StringBlockError("String block is not NUL terminated")
    try:
        text = payload[:end].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise StringBlockError(f"String block is not valid utf-8: {exc}")
    return from_disk_name(text)


def decode_str_block(block: bytes) -> str:
    name, _ = read_str_block(io.BytesIO(block))
    return name
