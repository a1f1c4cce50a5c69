"""Prime-field arithmetic F_p.

All values are Python ints in [0, PRIME).  An element serializes to
FIELD_ELEMENT_LEN little-endian bytes; only the canonical (fully reduced)
encoding decodes.
"""

from __future__ import annotations

import random

from staragg.config import FIELD_ELEMENT_LEN, PRIME
from staragg.errors import InvalidEncoding


def add(a: int, b: int) -> int:
    return (a + b) % PRIME


def sub(a: int, b: int) -> int:
    return (a - b) % PRIME


def mul(a: int, b: int) -> int:
    return (a * b) % PRIME


def neg(a: int) -> int:
    return -a % PRIME


def reduce(a: int) -> int:
    return a % PRIME


def inv(a: int) -> int:
    """Inverse of a nonzero element (Fermat)."""
    if a % PRIME == 0:
        raise ZeroDivisionError("0 has no inverse in F_p")
    return pow(a, PRIME - 2, PRIME)


def random_element(rng: random.Random) -> int:
    return rng.randrange(PRIME)


def to_bytes(a: int) -> bytes:
    return reduce(a).to_bytes(FIELD_ELEMENT_LEN, "little")


def from_bytes(data: bytes) -> int:
    """Decode a canonical element, raising ``InvalidEncoding`` otherwise."""
    if len(data) != FIELD_ELEMENT_LEN:
        raise InvalidEncoding(
            f"Field element must be {FIELD_ELEMENT_LEN} bytes, got {len(data)}"
        )
    value = int.from_bytes(data, "little")
    if value >= PRIME:
        raise InvalidEncoding("Field element encoding is not canonical")
    return value
