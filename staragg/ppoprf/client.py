"""Client side of the oblivious evaluation: blind, unblind, verify."""

from __future__ import annotations

from typing import Tuple

from staragg.crypto import group
from staragg.errors import InvalidPoint, ProofVerificationError
from staragg.ppoprf.server import Evaluation, dleq_challenge


def blind(point: bytes) -> Tuple[bytes, int]:
    """Return ``(r * point, r)`` for a fresh random scalar ``r``."""
    r = group.random_scalar()
    return group.scalar_mult(r, point), r


def unblind(output: bytes, r: int) -> bytes:
    return group.scalar_mult(group.scalar_inv(r), output)


def verify_proof(public_key: bytes, point: bytes, evaluation: Evaluation) -> None:
    """Check the evaluation proof, raising ``ProofVerificationError`` on failure."""
    proof = evaluation.proof
    if proof is None:
        raise ProofVerificationError("Evaluation carries no proof")
    output = group.point_from_bytes(evaluation.output)
    # A1 = s*B + c*P,  A2 = s*O + c*Q
    try:
        a1 = group.point_add(
            group.scalar_mult_base(proof.s), group.scalar_mult(proof.c, public_key)
        )
        a2 = group.point_add(
            group.scalar_mult(proof.s, output), group.scalar_mult(proof.c, point)
        )
    except InvalidPoint as exc:
        raise ProofVerificationError("Evaluation proof is malformed") from exc
    if dleq_challenge(public_key, point, output, a1, a2) != proof.c:
        raise ProofVerificationError("Evaluation proof does not verify")
