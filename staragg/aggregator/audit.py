"""Hash-chained log of collection events.

The aggregation service records what it accepted and what each retrieval
produced (counts only, never measurements).  Every entry commits to its
predecessor, so rewriting history breaks ``verify_chain``.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

GENESIS = "0" * 64


def _digest(timestamp: float, event: str, data: Dict[str, Any], prev_hash: str) -> str:
    payload = json.dumps(
        {"timestamp": timestamp, "event": event, "data": data, "prev_hash": prev_hash},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode()).hexdigest()


@dataclass(frozen=True)
class AuditEntry:
    timestamp: float
    event: str
    data: Dict[str, Any]
    prev_hash: str
    entry_hash: str


class AuditLog:
    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []

    @property
    def head(self) -> str:
        return self._entries[-1].entry_hash if self._entries else GENESIS

    def append(self, event: str, data: Dict[str, Any]) -> AuditEntry:
        ts = time.time()
        prev = self.head
        entry = AuditEntry(ts, event, data, prev, _digest(ts, event, data, prev))
        self._entries.append(entry)
        return entry

    def entries(self) -> List[Dict[str, Any]]:
        return [asdict(e) for e in self._entries]

    def verify_chain(self) -> bool:
        prev = GENESIS
        for e in self._entries:
            if e.prev_hash != prev:
                return False
            if e.entry_hash != _digest(e.timestamp, e.event, e.data, e.prev_hash):
                return False
            prev = e.entry_hash
        return True
