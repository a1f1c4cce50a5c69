"""Zipf-distributed synthetic measurements for load testing.

Rank ``k`` of ``1..n`` is drawn with probability proportional to
``1 / k**s``, so a few values are reported by many clients and the long
tail by few, which is the shape threshold aggregation is built for.
"""

from __future__ import annotations

import bisect
import random
from functools import lru_cache
from itertools import accumulate
from typing import List, Optional

from staragg.client.triple import Client


@lru_cache(maxsize=16)
def _cumulative_weights(n: int, s: float) -> List[float]:
    if n < 1:
        raise ValueError("n must be positive")
    if s <= 0:
        raise ValueError("s must be positive")
    return list(accumulate(1.0 / k ** s for k in range(1, n + 1)))


def sample_zipf(n: int, s: float, rng: Optional[random.Random] = None) -> int:
    """One rank in ``1..n``."""
    cum = _cumulative_weights(n, s)
    rng = rng or random
    u = rng.random() * cum[-1]
    return min(bisect.bisect_right(cum, u), n - 1) + 1


def client_zipf(
    n: int,
    s: float,
    threshold: int,
    epoch: str,
    aux: Optional[bytes] = None,
    rng: Optional[random.Random] = None,
    **kwargs,
) -> Client:
    """A client whose measurement is a Zipf(n, s) rank, as text."""
    return Client(str(sample_zipf(n, s, rng)), threshold, epoch, aux, **kwargs)
