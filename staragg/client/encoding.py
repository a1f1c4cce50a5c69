"""Length-prefixed payload encoding into field-element chunks.

``Sharks`` only deals secrets whose length is a whole number of field
elements, each a canonical value below PRIME.  Client payloads are
arbitrary bytes, so they are framed as

    len (4 bytes, big-endian) || data || zero padding

cut into PAYLOAD_CHUNK_LEN-byte slices, and each slice is stored in the low
bytes of a little-endian field element whose top byte is zero.  Such a
value is always below PRIME.
"""

from __future__ import annotations

from staragg.config import FIELD_ELEMENT_LEN, PAYLOAD_CHUNK_LEN
from staragg.errors import InvalidEncoding

_LEN_PREFIX = 4


def encode_payload(data: bytes) -> bytes:
    if len(data) >= 1 << (8 * _LEN_PREFIX):
        raise ValueError("Payload too large")
    framed = len(data).to_bytes(_LEN_PREFIX, "big") + data
    framed += b"\x00" * (-len(framed) % PAYLOAD_CHUNK_LEN)
    out = bytearray()
    for i in range(0, len(framed), PAYLOAD_CHUNK_LEN):
        out += framed[i:i + PAYLOAD_CHUNK_LEN] + b"\x00"
    return bytes(out)


def decode_payload(encoded: bytes) -> bytes:
    if not encoded or len(encoded) % FIELD_ELEMENT_LEN:
        raise InvalidEncoding("Encoded payload is not a whole number of elements")
    framed = bytearray()
    for i in range(0, len(encoded), FIELD_ELEMENT_LEN):
        chunk = encoded[i:i + FIELD_ELEMENT_LEN]
        if chunk[-1] != 0:
            raise InvalidEncoding("Payload element has a nonzero top byte")
        framed += chunk[:-1]
    length = int.from_bytes(framed[:_LEN_PREFIX], "big")
    body = bytes(framed[_LEN_PREFIX:])
    if length > len(body) or any(body[length:]):
        raise InvalidEncoding("Payload length prefix does not match its padding")
    return body[:length]
