"""Deterministic random source for dealing.

``HashDRBG`` is a :class:`random.Random` whose bits come from SHAKE-256
over a seed and a block counter, so every method of ``random.Random``
(``randrange``, ``randbytes`` ...) is reproducible from the seed.  Clients
use it to derive polynomial coefficients from their tag randomness.
"""

from __future__ import annotations

import hashlib
import random

_BLOCK = 136  # SHAKE-256 rate in bytes


class HashDRBG(random.Random):
    """Seeded SHAKE-256 bit stream exposed through the ``random.Random`` API."""

    def __init__(self, seed: bytes) -> None:
        self._seed = b""
        self._counter = 0
        self._buffer = b""
        super().__init__(seed)

    def seed(self, a=None, version=2) -> None:
        if not isinstance(a, (bytes, bytearray)):
            raise TypeError("HashDRBG must be seeded with bytes")
        self._seed = bytes(a)
        self._counter = 0
        self._buffer = b""

    def _read(self, n: int) -> bytes:
        while len(self._buffer) < n:
            block = hashlib.shake_256(
                self._seed + self._counter.to_bytes(8, "big")
            ).digest(_BLOCK)
            self._counter += 1
            self._buffer += block
        out, self._buffer = self._buffer[:n], self._buffer[n:]
        return out

    def getrandbits(self, k: int) -> int:
        if k < 0:
            raise ValueError("number of bits must be non-negative")
        if k == 0:
            return 0
        nbytes = (k + 7) // 8
        value = int.from_bytes(self._read(nbytes), "big")
        return value >> (nbytes * 8 - k)

    def random(self) -> float:
        return self.getrandbits(53) * (2.0 ** -53)

    def getstate(self):
        return (self._seed, self._counter, self._buffer)

    def setstate(self, state) -> None:
        self._seed, self._counter, self._buffer = state
