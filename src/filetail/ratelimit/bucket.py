"""Leaky bucket rate limiting."""

from __future__ import annotations

import time
from collections.abc import Callable


class LeakyBucket:
    """A bucket of ``capacity`` tokens that leaks one token per ``leak_interval``.

    Bursts up to ``capacity`` are admitted; afterwards tokens are admitted
    only as fast as the bucket drains.

    Args:
        capacity: Maximum level the bucket may hold.
        leak_interval: Seconds it takes for one token to leak out.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        capacity: int,
        leak_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if leak_interval <= 0:
            raise ValueError("leak_interval must be positive")
        self.capacity = capacity
        self.leak_interval = leak_interval
        self.level = 0.0
        self._clock = clock
        self.last_update = clock()

    def _leak(self) -> None:
        now = self._clock()
        if self.level > 0:
            elapsed = max(0.0, now - self.last_update)
            self.level = max(0.0, self.level - elapsed / self.leak_interval)
        self.last_update = now

    def pour(self, amount: int = 1) -> bool:
        """Add ``amount`` tokens.

        Returns:
            False (and keeps the level unchanged) if the bucket would overflow.
        """
        self._leak()
        new_level = self.level + amount
        if new_level > self.capacity:
            return False
        self.level = new_level
        return True

    def drained_at(self) -> float:
        """Clock time at which the bucket will be empty."""
        return self.last_update + self.level * self.leak_interval

    def time_to_drain(self) -> float:
        return max(0.0, self.drained_at() - self._clock())

    def time_since_last_update(self) -> float:
        return self._clock() - self.last_update

    def is_drained(self) -> bool:
        return self.drained_at() <= self._clock()

    def __repr__(self) -> str:
        return (
            f"LeakyBucket(capacity={self.capacity}, leak_interval={self.leak_interval}, "
            f"level={self.level:.3f})"
        )
