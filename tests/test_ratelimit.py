"""Tests for the leaky bucket rate limiter and its store."""

from __future__ import annotations

import pytest

from filetail.ratelimit import BucketStore, LeakyBucket


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestLeakyBucket:
    """Admission and draining."""

    def test_rejects_invalid_parameters(self) -> None:
        with pytest.raises(ValueError):
            LeakyBucket(0, 1.0)
        with pytest.raises(ValueError):
            LeakyBucket(1, 0)

    def test_burst_up_to_capacity(self, clock) -> None:
        bucket = LeakyBucket(3, 1.0, clock=clock)
        assert bucket.pour(1)
        assert bucket.pour(1)
        assert bucket.pour(1)
        assert not bucket.pour(1)

    def test_rejected_pour_keeps_level(self, clock) -> None:
        bucket = LeakyBucket(2, 1.0, clock=clock)
        assert bucket.pour(2)
        assert not bucket.pour(1)
        assert bucket.level == 2

    def test_second_pour_in_window_rejected(self, clock) -> None:
        """Capacity 1: two tokens inside one leak interval cannot both pass."""
        bucket = LeakyBucket(1, 1.0, clock=clock)
        assert bucket.pour(1)
        clock.advance(0.5)
        assert not bucket.pour(1)

    def test_leaks_over_time(self, clock) -> None:
        bucket = LeakyBucket(1, 1.0, clock=clock)
        assert bucket.pour(1)
        clock.advance(1.0)
        assert bucket.pour(1)

    def test_oversized_pour_rejected(self, clock) -> None:
        bucket = LeakyBucket(2, 1.0, clock=clock)
        assert not bucket.pour(3)
        assert bucket.level == 0

    def test_drained_at(self, clock) -> None:
        bucket = LeakyBucket(10, 0.5, clock=clock)
        bucket.pour(4)
        assert bucket.drained_at() == pytest.approx(clock.now + 2.0)
        assert bucket.time_to_drain() == pytest.approx(2.0)

        clock.advance(1.0)
        assert bucket.time_to_drain() == pytest.approx(1.0)
        assert bucket.time_since_last_update() == pytest.approx(1.0)
        assert not bucket.is_drained()

        clock.advance(1.0)
        assert bucket.is_drained()
        assert bucket.time_to_drain() == 0.0

    def test_empty_bucket_is_drained(self, clock) -> None:
        assert LeakyBucket(1, 1.0, clock=clock).is_drained()

    def test_level_never_negative(self, clock) -> None:
        bucket = LeakyBucket(5, 1.0, clock=clock)
        bucket.pour(1)
        clock.advance(100)
        assert bucket.pour(5)
        assert bucket.level == 5


class TestBucketStore:
    """Named buckets and garbage collection."""

    def test_get_miss(self) -> None:
        assert BucketStore().get("nope") is None

    def test_set_and_get(self, clock) -> None:
        store = BucketStore()
        bucket = LeakyBucket(1, 1.0, clock=clock)
        store.set("a", bucket)
        assert store.get("a") is bucket
        assert "a" in store
        assert len(store) == 1

    def test_get_or_create_reuses(self) -> None:
        store = BucketStore()
        first = store.get_or_create("a", 5, 1.0)
        assert store.get_or_create("a", 99, 9.0) is first
        assert first.capacity == 5

    def test_garbage_collect_evicts_drained(self, clock) -> None:
        store = BucketStore()
        busy = LeakyBucket(10, 1.0, clock=clock)
        idle = LeakyBucket(10, 1.0, clock=clock)
        busy.pour(5)
        store.set("busy", busy)
        store.set("idle", idle)

        assert store.garbage_collect() == 1
        assert store.get("idle") is None
        assert store.get("busy") is busy

        clock.advance(5.0)
        assert store.garbage_collect() == 1
        assert len(store) == 0

    def test_collected_name_recreated_fresh(self, clock) -> None:
        store = BucketStore()
        store.set("a", LeakyBucket(1, 1.0, clock=clock))
        store.garbage_collect()

        bucket = store.get_or_create("a", 1, 1.0)
        assert bucket.level == 0
        assert bucket.pour(1)
