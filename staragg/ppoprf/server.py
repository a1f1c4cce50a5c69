"""Puncturable partially-oblivious PRF server.

For metadata tag ``i`` (an epoch) the server's key is

    k_i = x + PPRF_K(i)  mod ℓ

where ``x`` is a long-term scalar and ``PPRF_K`` a GGM puncturable PRF.
Evaluating a (blinded) point ``Q`` returns ``k_i^-1 * Q``.  The tag public
key ``P_i = k_i * B`` lets clients check a Chaum-Pedersen proof that the
same ``k_i`` was used.

Puncturing tag ``i`` deletes ``PPRF_K(i)`` from the key.  Afterwards ``k_i``
cannot be recomputed, even by someone who later obtains the whole key.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from staragg.config import DST_DLEQ, MAX_MD_TAGS
from staragg.crypto import group
from staragg.errors import EpochPunctured, UnknownEpoch
from staragg.ppoprf.pprf import GGMPuncturableKey, PunctureError

logger = logging.getLogger(__name__)

Tag = Union[str, bytes]


def _tag_bytes(tag: Tag) -> bytes:
    return tag.encode() if isinstance(tag, str) else bytes(tag)


@dataclass(frozen=True)
class Proof:
    """Chaum-Pedersen proof of equal discrete logarithms (challenge, response)."""

    c: int
    s: int

    def to_bytes(self) -> bytes:
        return group.scalar_to_bytes(self.c) + group.scalar_to_bytes(self.s)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        if len(data) != 2 * group.SCALAR_BYTES:
            raise ValueError("Proof must be 64 bytes")
        return cls(
            c=group.scalar_from_bytes(data[: group.SCALAR_BYTES]),
            s=group.scalar_from_bytes(data[group.SCALAR_BYTES:]),
        )


@dataclass(frozen=True)
class Evaluation:
    output: bytes
    proof: Optional[Proof] = None


def dleq_challenge(public_key: bytes, point: bytes, output: bytes, a1: bytes, a2: bytes) -> int:
    return group.hash_to_scalar(
        DST_DLEQ, group.scalar_mult_base(1), public_key, output, point, a1, a2
    )


def prove(k: int, public_key: bytes, point: bytes, output: bytes) -> Proof:
    """Prove ``public_key = k*B`` and ``point = k*output``."""
    r = group.random_scalar()
    a1 = group.scalar_mult_base(r)
    a2 = group.scalar_mult(r, output)
    c = dleq_challenge(public_key, point, output, a1, a2)
    return Proof(c=c, s=group.scalar_sub(r, group.scalar_mul(c, k)))


class PPOPRFServer:
    """Key holder for a fixed list of metadata tags (at most 256)."""

    def __init__(self, tags: Sequence[Tag]) -> None:
        if not tags:
            raise ValueError("At least one metadata tag is required")
        if len(tags) > MAX_MD_TAGS:
            raise ValueError(f"At most {MAX_MD_TAGS} metadata tags are supported")
        self.tags: List[bytes] = [_tag_bytes(t) for t in tags]
        if len(set(self.tags)) != len(self.tags):
            raise ValueError("Metadata tags must be distinct")
        self._x = group.random_scalar()
        self._pprf = GGMPuncturableKey()
        self._public_keys: Dict[int, bytes] = {}
        self._lock = threading.Lock()
        for index in range(len(self.tags)):
            self._public_keys[index] = group.scalar_mult_base(self._tag_key(index))

    # ---- key schedule ----

    def _check_index(self, md_index: int) -> None:
        if not 0 <= md_index < len(self.tags):
            raise UnknownEpoch(f"No metadata tag with index {md_index}")

    def _tag_key(self, md_index: int) -> int:
        try:
            t = group.hash_to_scalar(self._pprf.eval(md_index))
        except PunctureError:
            raise EpochPunctured(self.tags[md_index].decode(errors="replace")) from None
        return group.scalar_add(self._x, t)

    # ---- lookup ----

    def md_index(self, tag: Tag) -> int:
        try:
            return self.tags.index(_tag_bytes(tag))
        except ValueError:
            raise UnknownEpoch(f"Unknown metadata tag {tag!r}") from None

    def public_key(self, md_index: int) -> bytes:
        """Public key ``k_i * B`` of tag *md_index* (kept after puncturing)."""
        self._check_index(md_index)
        return self._public_keys[md_index]

    def is_punctured(self, md_index: int) -> bool:
        self._check_index(md_index)
        return self._pprf.is_punctured(md_index)

    # ---- operations ----

    def eval(self, point: bytes, md_index: int, verifiable: bool = False) -> Evaluation:
        """Evaluate at compressed *point* under the key of tag *md_index*."""
        self._check_index(md_index)
        point = group.point_from_bytes(point)
        with self._lock:
            k = self._tag_key(md_index)
        output = group.scalar_mult(group.scalar_inv(k), point)
        proof = prove(k, self._public_keys[md_index], point, output) if verifiable else None
        return Evaluation(output=output, proof=proof)

    def puncture(self, tag: Tag) -> None:
        """Irreversibly remove the ability to evaluate under *tag*."""
        md_index = self.md_index(tag)
        with self._lock:
            removed = self._pprf.puncture(md_index)
        if removed:
            logger.info("punctured metadata tag index %d", md_index)
        else:
            logger.debug("metadata tag index %d already punctured", md_index)
