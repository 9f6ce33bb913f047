"""Rate limiting primitives."""

from filetail.ratelimit.bucket import LeakyBucket
from filetail.ratelimit.store import BucketStore

__all__ = ["BucketStore", "LeakyBucket"]
