"""Threshold secret sharing over F_p for byte-string secrets.

API
---
Sharks(t).dealer_rng(secret, rng)  -> Evaluator  (lazy, endless shares)
Sharks(t).dealer(secret)           -> Evaluator  seeded from the OS CSPRNG
Sharks(t).recover(shares)          -> secret     (needs >= t distinct x)

A secret is split into FIELD_ELEMENT_LEN-byte chunks; every chunk is the
constant term of its own random polynomial of degree t-1.  A share is one
evaluation point x together with the value of every polynomial at x.

Evaluation points are sampled independently for every share rather than
counted, so a share reveals nothing about how many were issued.  Two shares
may therefore collide on x; recovery keeps only the first share for each x.
"""

from __future__ import annotations

import random
import secrets
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from staragg.config import DEFAULT_POINT_WIDTH, FIELD_ELEMENT_LEN, PRIME
from staragg.crypto import field
from staragg.errors import InconsistentShareLength, InsufficientShares, InvalidEncoding

Polynomial = List[int]


def point_domain(point_width: int) -> int:
    """Exclusive upper bound of the evaluation-point domain for *point_width*."""
    if point_width < 1 or point_width > FIELD_ELEMENT_LEN:
        raise ValueError(f"Invalid point width: {point_width}")
    return min(256 ** point_width, PRIME)


@dataclass(frozen=True)
class Share:
    """One evaluation point ``x`` and the value of each chunk polynomial there."""

    x: int
    y: Tuple[int, ...]

    def to_bytes(self, point_width: int = DEFAULT_POINT_WIDTH) -> bytes:
        """``x`` in *point_width* little-endian bytes, then each ``y`` element."""
        if not 0 <= self.x < point_domain(point_width):
            raise ValueError(f"x={self.x} does not fit in {point_width} byte(s)")
        out = bytearray(self.x.to_bytes(point_width, "little"))
        for value in self.y:
            out += field.to_bytes(value)
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes, point_width: int = DEFAULT_POINT_WIDTH) -> "Share":
        if not 1 <= point_width <= FIELD_ELEMENT_LEN:
            raise InvalidEncoding(f"Invalid point width: {point_width}")
        if len(data) < point_width or (len(data) - point_width) % FIELD_ELEMENT_LEN:
            raise InvalidEncoding(
                f"Share of {len(data)} bytes is not {point_width} + k*{FIELD_ELEMENT_LEN}"
            )
        x = int.from_bytes(data[:point_width], "little")
        if x >= PRIME:
            raise InvalidEncoding("Evaluation point is not a field element")
        y = tuple(
            field.from_bytes(data[i:i + FIELD_ELEMENT_LEN])
            for i in range(point_width, len(data), FIELD_ELEMENT_LEN)
        )
        return cls(x=x, y=y)


def random_polynomial(secret: int, threshold: int, rng: random.Random) -> Polynomial:
    """Degree ``threshold - 1`` polynomial with constant term *secret*."""
    return [secret] + [field.random_element(rng) for _ in range(threshold - 1)]


def _eval_poly(coeffs: Sequence[int], x: int) -> int:
    """Evaluate polynomial (Horner's method) mod PRIME."""
    result = 0
    for c in reversed(coeffs):
        result = field.add(field.mul(result, x), c)
    return result


class Evaluator:
    """Holds the chunk polynomials of one dealing and hands out shares.

    Iterating an Evaluator never ends; take as many shares as needed with
    ``itertools.islice``.
    """

    def __init__(
        self,
        polys: List[Polynomial],
        point_width: int = DEFAULT_POINT_WIDTH,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._polys = polys
        self.point_width = point_width
        self._domain = point_domain(point_width)
        self._rng = rng if rng is not None else secrets.SystemRandom()

    def gen(self, rng: Optional[random.Random] = None) -> Share:
        """Sample a fresh nonzero x and evaluate every polynomial at it."""
        source = rng if rng is not None else self._rng
        x = source.randrange(1, self._domain)
        return Share(x=x, y=tuple(_eval_poly(p, x) for p in self._polys))

    def __iter__(self) -> Iterator[Share]:
        return self

    def __next__(self) -> Share:
        return self.gen()


def _lagrange_at_zero(xs: Sequence[int]) -> List[int]:
    """Lagrange basis coefficients l_j(0) for the points *xs*."""
    coeffs = []
    for j, xj in enumerate(xs):
        num = 1
        den = 1
        for m, xm in enumerate(xs):
            if m == j:
                continue
            num = field.mul(num, field.neg(xm))          # (0 - x_m)
            den = field.mul(den, field.sub(xj, xm))      # (x_j - x_m)
        coeffs.append(field.mul(num, field.inv(den)))
    return coeffs


def interpolate(shares: Sequence[Share]) -> bytes:
    """Reconstruct every chunk at x=0 from *shares* and concatenate them.

    All shares are used; x values must be pairwise distinct.
    """
    if not shares:
        raise ValueError("Need at least one share")
    lagrange = _lagrange_at_zero([s.x for s in shares])
    out = bytearray()
    for chunk in range(len(shares[0].y)):
        secret = 0
        for share, coeff in zip(shares, lagrange):
            secret = field.add(secret, field.mul(share.y[chunk], coeff))
        out += field.to_bytes(secret)
    return bytes(out)


class Sharks:
    """Dealing and recovery for a fixed threshold.

    *point_width* selects the evaluation-point domain: the default samples x
    from the nonzero field elements, ``COMPACT_POINT_WIDTH`` from 1..255.
    """

    def __init__(self, threshold: int, point_width: int = DEFAULT_POINT_WIDTH) -> None:
        domain = point_domain(point_width)
        if threshold < 1 or threshold > domain - 1:
            raise ValueError(
                f"Invalid threshold: t={threshold}, at most {domain - 1} distinct points"
            )
        self.threshold = threshold
        self.point_width = point_width

    def dealer_rng(
        self,
        secret: bytes,
        rng: random.Random,
        point_rng: Optional[random.Random] = None,
    ) -> Evaluator:
        """Build the chunk polynomials of *secret* from *rng*.

        Coefficients come from *rng*; evaluation points from *point_rng*
        (default: *rng* as well).
        """
        if len(secret) % FIELD_ELEMENT_LEN:
            raise InvalidEncoding(
                f"Secret length {len(secret)} is not a multiple of {FIELD_ELEMENT_LEN}"
            )
        polys = []
        for i in range(0, len(secret), FIELD_ELEMENT_LEN):
            element = field.from_bytes(secret[i:i + FIELD_ELEMENT_LEN])
            polys.append(random_polynomial(element, self.threshold, rng))
        return Evaluator(polys, self.point_width, point_rng if point_rng is not None else rng)

    def dealer(self, secret: bytes) -> Evaluator:
        return self.dealer_rng(secret, secrets.SystemRandom())

    def recover(self, shares: Iterable[Share]) -> bytes:
        """Recover the secret from any collection of shares.

        Shares repeating an already-seen x are ignored.  The first
        ``threshold`` distinct shares, in input order, are interpolated.
        """
        share_length: Optional[int] = None
        seen = set()
        values: List[Share] = []

        for share in shares:
            if share_length is None:
                share_length = len(share.y)
            if len(share.y) != share_length:
                raise InconsistentShareLength("All shares must have the same length")
            if share.x not in seen:
                seen.add(share.x)
                values.append(share)

        if not seen or len(seen) < self.threshold:
            raise InsufficientShares(len(seen), self.threshold)

        return interpolate(values[: self.threshold])
