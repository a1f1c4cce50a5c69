"""Tests for payload framing into field elements."""

import pytest

from staragg.client.encoding import decode_payload, encode_payload
from staragg.config import FIELD_ELEMENT_LEN, PRIME
from staragg.crypto.shamir import Sharks
from staragg.errors import InvalidEncoding


@pytest.mark.parametrize("length", [0, 1, 27, 28, 100])
def test_roundtrip(length):
    data = bytes(range(length))
    assert decode_payload(encode_payload(data)) == data


def test_elements_are_canonical():
    encoded = encode_payload(b"\xff" * 200)
    assert len(encoded) % FIELD_ELEMENT_LEN == 0
    for i in range(0, len(encoded), FIELD_ELEMENT_LEN):
        assert int.from_bytes(encoded[i:i + FIELD_ELEMENT_LEN], "little") < PRIME
    # and therefore always dealable
    Sharks(2).dealer(encoded)


def test_chunk_boundary():
    # 4-byte length prefix + 27 bytes fills exactly one element
    assert len(encode_payload(b"a" * 27)) == FIELD_ELEMENT_LEN
    assert len(encode_payload(b"a" * 28)) == 2 * FIELD_ELEMENT_LEN


def test_nonzero_top_byte_rejected():
    encoded = bytearray(encode_payload(b"hello"))
    encoded[FIELD_ELEMENT_LEN - 1] = 1
    with pytest.raises(InvalidEncoding):
        decode_payload(bytes(encoded))


def test_length_prefix_too_large():
    encoded = bytearray(encode_payload(b"hello"))
    encoded[3] = 200
    with pytest.raises(InvalidEncoding):
        decode_payload(bytes(encoded))


def test_garbage_padding_rejected():
    encoded = bytearray(encode_payload(b"hi"))
    encoded[20] = 7
    with pytest.raises(InvalidEncoding):
        decode_payload(bytes(encoded))


def test_empty_or_ragged_input():
    with pytest.raises(InvalidEncoding):
        decode_payload(b"")
    with pytest.raises(InvalidEncoding):
        decode_payload(b"\x00" * 33)
