"""Tests for prime-field arithmetic and element encoding."""

import random

import pytest

from staragg.config import FIELD_ELEMENT_LEN, PRIME
from staragg.crypto import field
from staragg.errors import InvalidEncoding


def test_add_wrap():
    assert field.add(PRIME - 1, 2) == 1


def test_sub_underflow():
    assert field.sub(0, 1) == PRIME - 1


def test_mul_wrap():
    a = PRIME - 1
    assert field.mul(a, 2) == (a * 2) % PRIME


def test_inv():
    a = 12345
    assert field.mul(a, field.inv(a)) == 1


def test_inv_zero():
    with pytest.raises(ZeroDivisionError):
        field.inv(PRIME)


def test_neg():
    assert field.add(42, field.neg(42)) == 0


def test_encoding_is_little_endian():
    assert field.to_bytes(1) == b"\x01" + b"\x00" * (FIELD_ELEMENT_LEN - 1)
    assert field.from_bytes(b"\x02" + b"\x00" * 31) == 2


def test_encode_decode_largest():
    assert field.from_bytes(field.to_bytes(PRIME - 1)) == PRIME - 1


def test_decode_rejects_non_canonical():
    with pytest.raises(InvalidEncoding):
        field.from_bytes(PRIME.to_bytes(FIELD_ELEMENT_LEN, "little"))
    with pytest.raises(InvalidEncoding):
        field.from_bytes(b"\xff" * FIELD_ELEMENT_LEN)


def test_decode_rejects_wrong_length():
    with pytest.raises(InvalidEncoding):
        field.from_bytes(b"\x01" * 31)


def test_random_element_in_range():
    rng = random.Random(7)
    for _ in range(100):
        assert 0 <= field.random_element(rng) < PRIME


def test_reduce_and_encode_out_of_range():
    assert field.reduce(PRIME + 5) == 5
    assert field.to_bytes(-1) == field.to_bytes(PRIME - 1)
