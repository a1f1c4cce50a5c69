"""Logging helpers.

Modules log through ``logging.getLogger(__name__)``.  Nothing secret
(measurements, keys, randomness) is ever passed to a logger; tags are
shortened with :func:`short` before they are logged.
"""

from __future__ import annotations

import logging

from staragg.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """Install the staragg log format on the root logger."""
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("staragg").setLevel(level)


def short(tag: bytes, n: int = 6) -> str:
    """Hex prefix of *tag* suitable for log lines."""
    return tag[:n].hex()
