"""Threshold aggregation of client triples.

``retrieve_outputs`` is a pure function of the batch and the server's
configuration:

1. Triples for other epochs are ignored (counted in ``foreign_epoch``).
2. The rest are grouped by tag.
3. A group with fewer than ``threshold`` distinct evaluation points is
   dropped.  That is the privacy guarantee, not an error; it is only counted.
4. Every other group is recovered independently.  The recovered secret is
   ``key || measurement``; the key then opens each report's auxiliary data.
   A group that fails is reported in ``failures`` and never affects other
   groups.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from staragg.config import AES_KEY_LEN
from staragg.crypto.shamir import Sharks
from staragg.client.encoding import decode_payload
from staragg.client.triple import Triple, open_aux
from staragg.errors import StarError
from staragg.log import short

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Output:
    """A measurement revealed by a group that reached the threshold.

    ``aux`` holds one entry per distinct report in the group (resubmitted
    reports count once), ``None`` for reports sent without auxiliary data.
    """

    measurement: bytes
    aux: Tuple[Optional[bytes], ...]
    tag: bytes

    @property
    def count(self) -> int:
        return len(self.aux)


@dataclass(frozen=True)
class GroupFailure:
    """A group that reached the threshold but could not be recovered."""

    tag: bytes
    share_count: int
    reason: str


@dataclass
class RetrievalResult:
    outputs: List[Output] = field(default_factory=list)
    failures: List[GroupFailure] = field(default_factory=list)
    below_threshold: int = 0
    foreign_epoch: int = 0

    def measurements(self) -> List[bytes]:
        return [o.measurement for o in self.outputs]


@dataclass(frozen=True)
class AggregationServer:
    threshold: int
    epoch: str

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError(f"Invalid threshold: {self.threshold}")

    def group_by_tag(self, triples: Iterable[Triple]) -> Tuple[Dict[bytes, List[Triple]], int]:
        """Partition *triples* of this epoch by tag; also count foreign ones."""
        groups: Dict[bytes, List[Triple]] = {}
        foreign = 0
        for triple in triples:
            if triple.epoch != self.epoch:
                foreign += 1
                continue
            groups.setdefault(triple.tag, []).append(triple)
        return groups, foreign

    def recover_group(self, tag: bytes, triples: List[Triple]) -> Union[Output, GroupFailure]:
        """Recover one group; never raises for malformed group contents."""
        try:
            secret = Sharks(self.threshold, triples[0].point_width).recover(
                t.share for t in triples
            )
            payload = decode_payload(secret)
            if len(payload) < AES_KEY_LEN:
                return GroupFailure(tag, len(triples), "recovered payload too short")
            key, measurement = payload[:AES_KEY_LEN], payload[AES_KEY_LEN:]
            reports = {}
            for t in triples:
                reports.setdefault(t.share.x, t)
            aux = tuple(
                open_aux(key, t.ciphertext, tag, self.epoch) if t.ciphertext else None
                for t in reports.values()
            )
        except (StarError, ValueError) as exc:
            return GroupFailure(tag, len(triples), f"{type(exc).__name__}: {exc}")
        return Output(measurement=measurement, aux=aux, tag=tag)

    def retrieve_outputs(
        self, triples: Iterable[Triple], executor: Optional[Executor] = None
    ) -> RetrievalResult:
        """Recover every group of *triples* that reaches the threshold.

        Groups are independent; pass an *executor* to recover them in
        parallel.
        """
        groups, foreign = self.group_by_tag(triples)
        result = RetrievalResult(foreign_epoch=foreign)

        eligible = []
        for tag, members in groups.items():
            if len({t.share.x for t in members}) < self.threshold:
                result.below_threshold += 1
            else:
                eligible.append((tag, members))

        if executor is not None and eligible:
            recovered = list(executor.map(self.recover_group, *zip(*eligible)))
        else:
            recovered = [self.recover_group(tag, members) for tag, members in eligible]

        for item in recovered:
            if isinstance(item, Output):
                result.outputs.append(item)
            else:
                logger.warning(
                    "group %s failed recovery (%d reports): %s",
                    short(item.tag), item.share_count, item.reason,
                )
                result.failures.append(item)

        logger.info(
            "epoch %s: %d group(s) recovered, %d failed, %d below threshold",
            self.epoch, len(result.outputs), len(result.failures), result.below_threshold,
        )
        return result
