"""Prime-order group used by the randomness service.

Elements are points of the prime-order subgroup of edwards25519 in their
32-byte compressed encoding; scalars are ints mod L.  Point arithmetic is
delegated to libsodium through PyNaCl, scalar arithmetic is plain Python.
"""

from __future__ import annotations

import hashlib
import secrets

import nacl.bindings as sodium
from nacl.exceptions import RuntimeError as SodiumError

from staragg.errors import InvalidPoint

# Subgroup order ℓ (prime)
L = 2**252 + 27742317777372353535851937790883648493
SCALAR_BYTES = 32
POINT_BYTES = 32

# Hash-to-point tries successive counters until a subgroup point is hit;
# each try succeeds with probability about 1/16.
_HASH_TO_POINT_TRIES = 1 << 12


def scalar_reduce(x: int) -> int:
    return x % L


def scalar_add(a: int, b: int) -> int:
    return (a + b) % L


def scalar_sub(a: int, b: int) -> int:
    return (a - b) % L


def scalar_mul(a: int, b: int) -> int:
    return (a * b) % L


def scalar_inv(a: int) -> int:
    a %= L
    if a == 0:
        raise ZeroDivisionError("No inverse for 0 mod ℓ")
    return pow(a, L - 2, L)


def random_scalar() -> int:
    """Uniform nonzero scalar."""
    return secrets.randbelow(L - 1) + 1


def hash_to_scalar(*parts: bytes) -> int:
    h = hashlib.sha512()
    for part in parts:
        h.update(len(part).to_bytes(8, "big"))
        h.update(part)
    return int.from_bytes(h.digest(), "little") % L


def scalar_to_bytes(a: int) -> bytes:
    return (a % L).to_bytes(SCALAR_BYTES, "little")


def scalar_from_bytes(data: bytes) -> int:
    if len(data) != SCALAR_BYTES:
        raise ValueError("Scalar bytes must be 32 bytes")
    value = int.from_bytes(data, "little")
    if value >= L:
        raise ValueError("Scalar encoding is not canonical")
    return value


def is_valid_point(data: bytes) -> bool:
    if not isinstance(data, (bytes, bytearray)) or len(data) != POINT_BYTES:
        return False
    return bool(sodium.crypto_core_ed25519_is_valid_point(bytes(data)))


def point_from_bytes(data: bytes) -> bytes:
    """Validate a compressed point, raising ``InvalidPoint`` if malformed."""
    if not is_valid_point(data):
        raise InvalidPoint("Invalid compressed group element")
    return bytes(data)


def point_add(p: bytes, q: bytes) -> bytes:
    return sodium.crypto_core_ed25519_add(p, q)


def scalar_mult(n: int, p: bytes) -> bytes:
    """``n * p``; raises ``InvalidPoint`` when the result is the identity."""
    try:
        return sodium.crypto_scalarmult_ed25519_noclamp(scalar_to_bytes(n), p)
    except SodiumError as exc:
        raise InvalidPoint("Scalar multiplication produced the identity") from exc


def scalar_mult_base(n: int) -> bytes:
    try:
        return sodium.crypto_scalarmult_ed25519_base_noclamp(scalar_to_bytes(n))
    except SodiumError as exc:
        raise InvalidPoint("Scalar multiplication produced the identity") from exc


def hash_to_point(dst: bytes, data: bytes) -> bytes:
    """Map *data* to a subgroup point with unknown discrete logarithm."""
    prefix = len(dst).to_bytes(2, "big") + dst + len(data).to_bytes(8, "big") + data
    for counter in range(_HASH_TO_POINT_TRIES):
        candidate = hashlib.sha512(prefix + counter.to_bytes(4, "big")).digest()[:POINT_BYTES]
        if is_valid_point(candidate):
            return candidate
    raise InvalidPoint("hash_to_point exhausted its counter")
