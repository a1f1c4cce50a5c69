"""Error kinds raised by staragg.

``InsufficientShares`` is the expected outcome whenever too few clients
agree on a measurement; callers are meant to catch it.
"""

from __future__ import annotations


class StarError(Exception):
    """Base class for all staragg errors."""


class InvalidEncoding(StarError, ValueError):
    """Bytes do not decode to a valid field element, share or payload."""


class InconsistentShareLength(StarError, ValueError):
    """Shares in one recovery call carry different numbers of chunks."""


class InsufficientShares(StarError):
    """Fewer distinct evaluation points than the threshold."""

    def __init__(self, have: int, need: int) -> None:
        super().__init__(f"Not enough shares to recover secret ({have} < {need})")
        self.have = have
        self.need = need


class InvalidPoint(StarError, ValueError):
    """A compressed group element is malformed or not in the prime-order subgroup."""


class InvalidHandle(StarError, ValueError):
    """A randomness-server handle is unknown or already released."""


class RandomnessError(StarError):
    """The OPRF randomness service could not produce an evaluation."""


class ServiceUnavailable(RandomnessError):
    """The randomness service cannot be reached or is not configured."""


class EpochPunctured(RandomnessError):
    """The epoch's key has been punctured; no further evaluations exist."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"Epoch {tag!r} has been punctured")
        self.tag = tag


class UnknownEpoch(RandomnessError, LookupError):
    """The randomness service was not created with this epoch tag."""


class ProofVerificationError(RandomnessError):
    """An evaluation proof did not verify against the epoch public key."""


class DecryptionError(StarError):
    """Auxiliary data could not be decrypted with the recovered key."""
