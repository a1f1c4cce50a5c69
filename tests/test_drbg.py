"""Tests for the seeded random source."""

import pytest

from staragg.config import PRIME
from staragg.crypto.drbg import HashDRBG


def test_same_seed_same_stream():
    a = HashDRBG(b"seed")
    b = HashDRBG(b"seed")
    assert [a.randrange(PRIME) for _ in range(20)] == [b.randrange(PRIME) for _ in range(20)]


def test_different_seed_different_stream():
    a = HashDRBG(b"seed-a")
    b = HashDRBG(b"seed-b")
    assert a.getrandbits(256) != b.getrandbits(256)


def test_randrange_bounds():
    rng = HashDRBG(b"bounds")
    for _ in range(500):
        assert 1 <= rng.randrange(1, 256) < 256


def test_getrandbits_width():
    rng = HashDRBG(b"bits")
    for k in (1, 7, 8, 9, 255, 256):
        assert 0 <= rng.getrandbits(k) < 2 ** k
    assert rng.getrandbits(0) == 0


def test_state_roundtrip():
    rng = HashDRBG(b"state")
    rng.getrandbits(100)
    state = rng.getstate()
    first = [rng.getrandbits(64) for _ in range(5)]
    rng.setstate(state)
    assert [rng.getrandbits(64) for _ in range(5)] == first


def test_requires_bytes_seed():
    with pytest.raises(TypeError):
        HashDRBG(1234)
