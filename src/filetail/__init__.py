"""filetail - follow growing files through rotation and truncation.

Example:
    import asyncio
    from filetail import TailConfig, start_tail

    async def main() -> None:
        tail = start_tail("/var/log/app.log", TailConfig(follow=True, reopen=True))
        async for line in tail.lines:
            print(line.text)

    asyncio.run(main())
"""

__version__ = "0.3.0"

from filetail.engine import (  # noqa: E402
    Line,
    LineKind,
    LineStream,
    SeekInfo,
    Tail,
    TailConfig,
    start_tail,
)
from filetail.errors import (  # noqa: E402
    FatalIOError,
    RateLimitEngaged,
    StartupError,
    TailError,
    WatchServiceError,
)
from filetail.lifecycle import LifecycleController  # noqa: E402
from filetail.ratelimit import BucketStore, LeakyBucket  # noqa: E402
from filetail.watching import (  # noqa: E402
    ChangeKind,
    ChangeSet,
    FileWatcher,
    NativeWatcher,
    PollingWatcher,
    WatchMultiplexer,
)

__all__ = [
    "BucketStore",
    "ChangeKind",
    "ChangeSet",
    "FatalIOError",
    "FileWatcher",
    "LeakyBucket",
    "LifecycleController",
    "Line",
    "LineKind",
    "LineStream",
    "NativeWatcher",
    "PollingWatcher",
    "RateLimitEngaged",
    "SeekInfo",
    "StartupError",
    "Tail",
    "TailConfig",
    "TailError",
    "WatchMultiplexer",
    "WatchServiceError",
    "start_tail",
]
