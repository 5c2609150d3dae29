"""
Keystream used to obfuscate compressed entry payloads.

The generator is a plain 32-bit MT19937 seeded with the reference
``init_genrand`` routine. Each output byte consumes one full 32-bit word and
keeps only its low 8 bits; the game client reproduces exactly this sequence,
so the consumption rate is part of the format.

``MT19937`` is the readable reference. ``Keystream`` loads the same seeded
state into ``random.Random`` (also MT19937) and draws words from it in bulk.
"""

from __future__ import annotations

import random

from Cryptodome.Util.strxor import strxor

from .constants import SEED_MASK, SEED_SHIFT, U32_MAX


_N = 624
_M = 397
_MATRIX_A = 0x9908B0DF
_UPPER_MASK = 0x80000000
_LOWER_MASK = 0x7FFFFFFF

# words drawn per getrandbits call in Keystream.take
_TAKE_CHUNK = 1 << 16


def init_genrand(seed: int) -> list[int]:
    """State vector of the reference ``init_genrand(seed)``."""
    mt = [0] * _N
    mt[0] = seed & U32_MAX
    for i in range(1, _N):
        prev = mt[i - 1]
        mt[i] = (1812433253 * (prev ^ (prev >> 30)) + i) & U32_MAX
    return mt


class MT19937:
    """Reference MT19937 producing 32-bit words."""

    def __init__(self, seed: int):
        self.mt = init_genrand(seed)
        self.index = _N

    def _twist(self):
        mt = self.mt
        for i in range(_N):
            y = (mt[i] & _UPPER_MASK) | (mt[(i + 1) % _N] & _LOWER_MASK)
            v = mt[(i + _M) % _N] ^ (y >> 1)
            if y & 1:
                v ^= _MATRIX_A
            mt[i] = v
        self.index = 0

    def next_u32(self) -> int:
        if self.index >= _N:
            self._twist()
        y = self.mt[self.index]
        self.index += 1
        y ^= y >> 11
        y ^= (y << 7) & 0x9D2C5680
        y ^= (y << 15) & 0xEFC60000
        y ^= y >> 18
        return y & U32_MAX


class Keystream:
    """Byte source over MT19937: one generated word per byte, low 8 bits kept."""

    def __init__(self, seed: int):
        self.seed = seed & U32_MAX
        self._rng = random.Random()
        # index == N forces a twist before the first word, as in genrand_int32
        self._rng.setstate((3, tuple(init_genrand(self.seed)) + (_N,), None))

    @classmethod
    def for_version(cls, version: int) -> "Keystream":
        return cls(seed_for_version(version))

    def next_byte(self) -> int:
        return self._rng.getrandbits(32) & 0xFF

    def take(self, n: int) -> bytes:
        out = bytearray()
        draw = self._rng.getrandbits
        while n > 0:
            k = min(n, _TAKE_CHUNK)
            # successive words are packed least significant first; keep the
            # low byte of each 4-byte little-endian group
            out += draw(32 * k).to_bytes(4 * k, "little")[::4]
            n -= k
        return bytes(out)


def seed_for_version(version: int) -> int:
    return ((version << SEED_SHIFT) & U32_MAX) ^ SEED_MASK


def obfuscate(data: bytes, version: int) -> bytes:
    """XOR ``data`` with the keystream for ``version``.

    XOR is self-inverse, so the same call de-obfuscates.
    """
    if not data:
        return b""
    return strxor(bytes(data), Keystream.for_version(version).take(len(data)))


deobfuscate = obfuscate
