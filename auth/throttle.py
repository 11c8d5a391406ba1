"""
auth/throttle.py -- Per-identity failed-login counter with timed lockout.

Each identity is either Open (no record, or a record older than the window)
or Locked (record inside the window with count >= max_attempts). The window
slides: every failure refreshes the record's timestamp, so attempts are
counted relative to the most recent failure rather than a fixed bucket.

Concurrency:
  Every read-modify-write of the attempt map happens under one lock, so N
  concurrent record_failure() calls for an identity leave count == N.

  guard(identity) serialises a whole login attempt for one identity
  (is_locked -> password check -> record_failure/reset). Without it, several
  concurrent wrong-password requests could all pass is_locked() before any of
  them records its failure. Guards use a fixed pool of striped locks, so
  memory stays bounded no matter how many identities are seen, and unrelated
  identities rarely wait on each other.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
import zlib
from collections.abc import Callable, Iterator

logger = logging.getLogger("rxauth.throttle")

_GUARD_STRIPES = 64


class LoginThrottle:
    """Usage:
    throttle = LoginThrottle(max_attempts=5, window_seconds=900)
    with throttle.guard(email):
        if throttle.is_locked(email): ...
        throttle.record_failure(email)
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 15 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._attempts: dict[str, tuple[int, float]] = {}  # identity -> (count, last_failure)
        self._guards = [threading.Lock() for _ in range(_GUARD_STRIPES)]

    def _expired(self, last_failure: float, now: float) -> bool:
        return now - last_failure > self.window_seconds

    @contextlib.contextmanager
    def guard(self, identity: str) -> Iterator[None]:
        """Hold the identity's stripe lock for the duration of a login attempt."""
        stripe = self._guards[zlib.crc32(identity.encode("utf-8")) % _GUARD_STRIPES]
        with stripe:
            yield

    def is_locked(self, identity: str) -> bool:
        """Return True if the identity has reached max_attempts inside the window.

        An expired record is deleted here so stale state never lingers.
        """
        now = self._clock()
        with self._lock:
            record = self._attempts.get(identity)
            if record is None:
                return False
            count, last_failure = record
            if self._expired(last_failure, now):
                del self._attempts[identity]
                return False
            return count >= self.max_attempts

    def record_failure(self, identity: str) -> int:
        """Count one failed attempt and return the identity's new count."""
        now = self._clock()
        with self._lock:
            record = self._attempts.get(identity)
            if record is None or self._expired(record[1], now):
                count = 1
            else:
                count = record[0] + 1
            self._attempts[identity] = (count, now)
        if count == self.max_attempts:
            logger.warning("Login lockout engaged after %d failed attempts", count)
        return count

    def reset(self, identity: str) -> None:
        with self._lock:
            self._attempts.pop(identity, None)

    def attempts(self, identity: str) -> int:
        """Effective failure count: 0 when there is no live record."""
        now = self._clock()
        with self._lock:
            record = self._attempts.get(identity)
            if record is None or self._expired(record[1], now):
                return 0
            return record[0]

    def retry_after(self, identity: str) -> int:
        """Seconds until the identity's record expires (0 if there is none)."""
        now = self._clock()
        with self._lock:
            record = self._attempts.get(identity)
            if record is None:
                return 0
            remaining = self.window_seconds - (now - record[1])
        return max(0, int(remaining) + 1)

    def purge_expired(self) -> int:
        """Drop every expired record. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, last) in self._attempts.items() if self._expired(last, now)]
            for identity in expired:
                del self._attempts[identity]
        return len(expired)
