"""Named registry of leaky buckets."""

from __future__ import annotations

import threading

from filetail.logging import get_logger
from filetail.ratelimit.bucket import LeakyBucket

log = get_logger("ratelimit")


class BucketStore:
    """Maps names to LeakyBuckets.

    Buckets that have fully drained carry no state worth keeping;
    garbage_collect() drops them and a later get() for the name misses,
    so the caller recreates the bucket.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, LeakyBucket] = {}

    def set(self, name: str, bucket: LeakyBucket) -> None:
        with self._lock:
            self._buckets[name] = bucket

    def get(self, name: str) -> LeakyBucket | None:
        """Return the bucket stored under ``name``, or None on a miss."""
        with self._lock:
            return self._buckets.get(name)

    def get_or_create(self, name: str, capacity: int, leak_interval: float) -> LeakyBucket:
        with self._lock:
            bucket = self._buckets.get(name)
            if bucket is None:
                bucket = LeakyBucket(capacity, leak_interval)
                self._buckets[name] = bucket
            return bucket

    def garbage_collect(self) -> int:
        """Evict drained buckets.

        Returns:
            Number of buckets evicted.
        """
        with self._lock:
            drained = [name for name, bucket in self._buckets.items() if bucket.is_drained()]
            for name in drained:
                del self._buckets[name]
        if drained:
            log.debug("Evicted %d idle bucket(s)", len(drained))
        return len(drained)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._buckets
