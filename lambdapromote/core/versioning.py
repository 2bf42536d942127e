"""Version derivation — ``<sortable timestamp>-<8 hex chars of digest>``.

The timestamp comes from a Clock. ``WallClock`` is used in production;
``LogicalClock`` makes versions reproducible in tests. Both are strictly
increasing, so two sequential publishes of byte-identical output still get
distinct versions (and distinct versioned keys).
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from lambdapromote.core.hasher import digest_of

DIGEST_PREFIX_LENGTH = 8
WALL_CLOCK_FORMAT = "%Y%m%dT%H%M%S%fZ"


@runtime_checkable
class Clock(Protocol):
    """Protocol for version timestamp sources."""

    def tick(self) -> str:
        """Return the next sortable timestamp token."""
        ...


class WallClock:
    """UTC wall-clock tokens with microsecond resolution.

    Tokens are strictly increasing within a process: if the clock has not
    advanced (or went backwards) since the last tick, the previous instant
    plus one microsecond is used instead.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def tick(self) -> str:
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(microseconds=1)
            self._last = now
            return now.strftime(WALL_CLOCK_FORMAT)


class LogicalClock:
    """Zero-padded counter tokens (``00000001``, ``00000002``, ...)."""

    def __init__(self, start: int = 0, width: int = 8) -> None:
        self._lock = threading.Lock()
        self._value = start
        self._width = width

    def tick(self) -> str:
        with self._lock:
            self._value += 1
            return str(self._value).zfill(self._width)


def derive_version(timestamp: str, fingerprint: str) -> str:
    """Combine a timestamp token and a fingerprint into a version string."""
    digest = digest_of(fingerprint)
    if len(digest) < DIGEST_PREFIX_LENGTH:
        raise ValueError(f"Fingerprint too short for a version: {fingerprint!r}")
    return f"{timestamp}-{digest[:DIGEST_PREFIX_LENGTH]}"
