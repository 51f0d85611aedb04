"""Per-account inbound message rate limiter.

Uses rolling time windows so a single account cannot flood the bot (and the
chain client behind it) with commands.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger("compound_chat.rate_limiter")


@dataclass
class RateBucket:
    """Tracks timestamps in a rolling window."""

    max_count: int
    window_seconds: float
    clock: Callable[[], float] = time.monotonic
    timestamps: list[float] = field(default_factory=list)

    def _prune(self) -> None:
        cutoff = self.clock() - self.window_seconds
        self.timestamps = [t for t in self.timestamps if t > cutoff]

    def check(self) -> bool:
        """Return True if another message is allowed."""
        self._prune()
        return len(self.timestamps) < self.max_count

    def record(self) -> None:
        self.timestamps.append(self.clock())

    def remaining(self) -> int:
        """Return how many messages remain in the current window."""
        self._prune()
        return max(0, self.max_count - len(self.timestamps))

    def retry_after(self) -> float:
        """Seconds until the oldest message leaves the window."""
        self._prune()
        if len(self.timestamps) < self.max_count:
            return 0.0
        return max(0.0, self.timestamps[0] + self.window_seconds - self.clock())


class RateLimiter:
    """One :class:`RateBucket` per account.

    A bucket exists only while its account has messages inside the window.
    Reads never create one, and a bucket whose window has emptied is dropped
    the next time it is touched or by :meth:`sweep`.
    """

    def __init__(
        self,
        max_count: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.max_count = max_count
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._buckets: dict[str, RateBucket] = {}

    def _live_bucket(self, account_id: str) -> RateBucket | None:
        bucket = self._buckets.get(account_id)
        if bucket is None:
            return None
        bucket._prune()
        if not bucket.timestamps:
            del self._buckets[account_id]
            return None
        return bucket

    def check(self, account_id: str) -> bool:
        bucket = self._live_bucket(account_id)
        return self.max_count > 0 if bucket is None else bucket.check()

    def remaining(self, account_id: str) -> int:
        bucket = self._live_bucket(account_id)
        return self.max_count if bucket is None else bucket.remaining()

    def retry_after(self, account_id: str) -> float:
        bucket = self._live_bucket(account_id)
        return 0.0 if bucket is None else bucket.retry_after()

    def check_and_record(self, account_id: str) -> bool:
        """Check if allowed and record in one step. Returns True if allowed."""
        bucket = self._live_bucket(account_id)
        if bucket is None:
            bucket = RateBucket(self.max_count, self.window_seconds, clock=self._clock)
            self._buckets[account_id] = bucket
        if not bucket.check():
            return False
        bucket.record()
        return True

    def sweep(self) -> int:
        """Drop every bucket with nothing left in its window.  Returns how many."""
        stale = [a for a in list(self._buckets) if self._live_bucket(a) is None]
        if stale:
            logger.debug(f"Swept {len(stale)} idle rate buckets")
        return len(stale)

    def __len__(self) -> int:
        return len(self._buckets)
