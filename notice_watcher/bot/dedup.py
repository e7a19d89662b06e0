"""Bounded memory of processed webhook updates."""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Hashable


class UpdateDeduplicator:
    """Remember update ids for ``ttl_seconds`` and at most ``max_entries`` of them.

    Telegram re-delivers an update until the webhook answers 200, so the same
    ``update_id`` may arrive more than once.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._seen: OrderedDict[Hashable, float] = OrderedDict()
        self._lock = Lock()

    def check_and_mark(self, update_id: Hashable) -> bool:
        """Return ``True`` the first time an id is seen within the TTL window."""

        now = self._clock()
        with self._lock:
            self._expire(now)
            if update_id in self._seen:
                return False
            self._seen[update_id] = now
            while len(self._seen) > self.max_entries:
                self._seen.popitem(last=False)
            return True

    def _expire(self, now: float) -> None:
        while self._seen:
            oldest_id, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self.ttl_seconds:
                break
            del self._seen[oldest_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)


__all__ = ["UpdateDeduplicator"]
