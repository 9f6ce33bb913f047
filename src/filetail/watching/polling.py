"""File watching implementation using polling.

Polling trades notification latency (bounded by the poll interval) for
portability: it needs nothing but stat() and behaves the same on every
platform and filesystem, including network mounts where native
notifications are unreliable.
"""

from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING

from filetail.errors import Dying, FatalIOError
from filetail.logging import TRACE, get_logger
from filetail.watching.changes import ChangeSet

if TYPE_CHECKING:
    from filetail.lifecycle import LifecycleController

log = get_logger("watching.polling")

# Default poll interval in seconds
DEFAULT_POLL_INTERVAL = 0.25


class PollingWatcher:
    """Watches a single file by sampling its metadata.

    Example:
        watcher = PollingWatcher("/var/log/app.log", poll_interval=0.1)
        await watcher.block_until_exists(lifecycle)
        changes = watcher.change_events(lifecycle, os.fstat(fd))
        kind = await changes.wait()
    """

    def __init__(self, filename: str, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        """Initialize the polling watcher.

        Args:
            filename: Path of the file to watch.
            poll_interval: Seconds between samples.
        """
        self.filename = filename
        self._poll_interval = poll_interval
        # Last sampled size; written only by the sampling task.
        self.size = 0
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    async def block_until_exists(self, lifecycle: LifecycleController) -> None:
        while True:
            try:
                os.stat(self.filename)
                return
            except FileNotFoundError:
                pass
            await lifecycle.sleep(self._poll_interval)

    def change_events(
        self, lifecycle: LifecycleController, initial: os.stat_result
    ) -> ChangeSet:
        changes = ChangeSet()
        self.size = initial.st_size
        task = asyncio.create_task(
            self._poll_loop(lifecycle, initial, changes),
            name=f"poll:{self.filename}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return changes

    async def _poll_loop(
        self,
        lifecycle: LifecycleController,
        initial: os.stat_result,
        changes: ChangeSet,
    ) -> None:
        prev_size = initial.st_size
        # None so the first sample always wakes the reader; data appended
        # between its EOF and this subscription is not missed.
        prev_mtime: int | None = None

        try:
            while not changes.closed:
                await lifecycle.sleep(self._poll_interval)

                try:
                    st = os.stat(self.filename)
                except FileNotFoundError:
                    log.debug("%s disappeared", self.filename)
                    changes.notify_deleted()
                    return
                except OSError as e:
                    log.error("Failed to stat %s: %s", self.filename, e)
                    lifecycle.kill(
                        FatalIOError(f"Failed to stat {self.filename}", underlying=e)
                    )
                    return

                if not os.path.samestat(initial, st):
                    log.debug("%s was replaced", self.filename)
                    changes.notify_deleted()
                    return

                self.size = st.st_size
                if st.st_size < prev_size:
                    log.debug("%s truncated (%d -> %d)", self.filename, prev_size, st.st_size)
                    changes.notify_truncated()
                    return
                grew = st.st_size > prev_size
                prev_size = st.st_size

                if grew or st.st_mtime_ns != prev_mtime:
                    prev_mtime = st.st_mtime_ns
                    changes.notify_modified()
                else:
                    log.log(TRACE, "%s not modified", self.filename)
        except Dying:
            pass
        finally:
            changes.close()

    async def close(self) -> None:
        """Stop any sampling task still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
