"""Handle-based boundary to the randomness server.

Embedding services talk to a server instance through an opaque integer
handle instead of holding the object:

    handle = create(["epoch-1", "epoch-2"])
    evaluate(handle, point, 0, verifiable=False)
    puncture(handle, "epoch-1")
    release(handle)

Handles index a process-wide registry and are never reused.  Using a
released handle raises ``InvalidHandle``.  ``ServerHandle`` wraps the
create/release pair as a context manager so the release happens on every
exit path.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, Sequence

from staragg.errors import InvalidHandle
from staragg.ppoprf.server import Evaluation, PPOPRFServer, Tag

logger = logging.getLogger(__name__)

_registry: Dict[int, PPOPRFServer] = {}
_registry_lock = threading.Lock()
_next_handle = itertools.count(1)


def _lookup(handle: int) -> PPOPRFServer:
    with _registry_lock:
        server = _registry.get(handle)
    if server is None:
        raise InvalidHandle(f"Unknown or released randomness server handle {handle}")
    return server


def create(tags: Sequence[Tag]) -> int:
    """Construct a server scoped to *tags* and return its handle."""
    server = PPOPRFServer(tags)
    with _registry_lock:
        handle = next(_next_handle)
        _registry[handle] = server
    logger.debug("created randomness server handle %d (%d tags)", handle, len(tags))
    return handle


def release(handle: int) -> None:
    """Destroy the instance behind *handle*."""
    with _registry_lock:
        server = _registry.pop(handle, None)
    if server is None:
        raise InvalidHandle(f"Unknown or released randomness server handle {handle}")
    logger.debug("released randomness server handle %d", handle)


def evaluate(handle: int, point: bytes, md_index: int, verifiable: bool = False) -> Evaluation:
    return _lookup(handle).eval(point, md_index, verifiable)


def puncture(handle: int, tag: Tag) -> None:
    _lookup(handle).puncture(tag)


def md_index(handle: int, tag: Tag) -> int:
    return _lookup(handle).md_index(tag)


def public_key(handle: int, index: int) -> bytes:
    return _lookup(handle).public_key(index)


def is_punctured(handle: int, index: int) -> bool:
    return _lookup(handle).is_punctured(index)


def tags(handle: int) -> Sequence[bytes]:
    return list(_lookup(handle).tags)


class ServerHandle:
    """Owned handle with the same ``md_index / public_key / eval`` interface
    as :class:`PPOPRFServer`, released on ``close()`` or context exit."""

    def __init__(self, tags: Sequence[Tag]) -> None:
        self._handle = create(tags)
        self._closed = False

    @property
    def handle(self) -> int:
        if self._closed:
            raise InvalidHandle("Randomness server handle already released")
        return self._handle

    def md_index(self, tag: Tag) -> int:
        return md_index(self.handle, tag)

    def public_key(self, index: int) -> bytes:
        return public_key(self.handle, index)

    def is_punctured(self, index: int) -> bool:
        return is_punctured(self.handle, index)

    @property
    def tags(self) -> Sequence[bytes]:
        return tags(self.handle)

    def eval(self, point: bytes, index: int, verifiable: bool = False) -> Evaluation:
        return evaluate(self.handle, point, index, verifiable)

    def puncture(self, tag: Tag) -> None:
        puncture(self.handle, tag)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            release(self._handle)

    def __enter__(self) -> "ServerHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
