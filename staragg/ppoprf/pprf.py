"""GGM-tree puncturable PRF over one-byte inputs.

The key is a set of tree nodes.  Initially it is only the root seed; the
value for input ``i`` is obtained by walking the 8 bits of ``i`` from the
root, expanding each node with HMAC-SHA256.  Puncturing ``i`` replaces the
node covering ``i`` with the siblings along the path below it, so the
leaf for ``i`` can never be derived again while every other leaf can.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Dict, Optional, Tuple

Prefix = Tuple[int, ...]

DEPTH = 8
SEED_LEN = 32


def _expand(node: bytes, bit: int) -> bytes:
    return hmac.new(node, bytes([bit]), hashlib.sha256).digest()


def _path(index: int) -> Prefix:
    if not 0 <= index < 1 << DEPTH:
        raise ValueError(f"PPRF input {index} is outside 0..{(1 << DEPTH) - 1}")
    return tuple((index >> (DEPTH - 1 - level)) & 1 for level in range(DEPTH))


class PunctureError(Exception):
    """The requested input has been punctured."""


class GGMPuncturableKey:
    """Puncturable PRF key mapping ``0..255`` to 32-byte outputs."""

    def __init__(self, seed: Optional[bytes] = None) -> None:
        if seed is None:
            seed = secrets.token_bytes(SEED_LEN)
        self._nodes: Dict[Prefix, bytes] = {(): seed}

    def _covering(self, path: Prefix) -> Optional[Prefix]:
        for depth in range(len(path) + 1):
            if path[:depth] in self._nodes:
                return path[:depth]
        return None

    def is_punctured(self, index: int) -> bool:
        return self._covering(_path(index)) is None

    def eval(self, index: int) -> bytes:
        path = _path(index)
        prefix = self._covering(path)
        if prefix is None:
            raise PunctureError(f"input {index} has been punctured")
        node = self._nodes[prefix]
        for bit in path[len(prefix):]:
            node = _expand(node, bit)
        return node

    def puncture(self, index: int) -> bool:
        """Remove *index* from the key; returns False if it already was."""
        path = _path(index)
        prefix = self._covering(path)
        if prefix is None:
            return False
        node = self._nodes.pop(prefix)
        for depth in range(len(prefix), DEPTH):
            bit = path[depth]
            self._nodes[path[:depth] + (1 - bit,)] = _expand(node, 1 - bit)
            node = _expand(node, bit)
        return True
