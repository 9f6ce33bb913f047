"""File watching implementation using native filesystem notifications."""

from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING

from filetail.errors import Dying, FatalIOError, WatchServiceError
from filetail.logging import get_logger
from filetail.watching.changes import ChangeSet
from filetail.watching.multiplexer import WatchEventKind, WatchMultiplexer

if TYPE_CHECKING:
    from filetail.lifecycle import LifecycleController

log = get_logger("watching.native")


class NativeWatcher:
    """Watches a single file through a shared WatchMultiplexer.

    Only one subscription per watcher is live at a time: starting a new
    wait first retires the previous background task, whose cleanup removes
    the path's watch before the new one is registered.
    """

    def __init__(self, filename: str, service: WatchMultiplexer) -> None:
        self.filename = WatchMultiplexer.normalize(filename)
        self._service = service
        # Last observed size; written only by the subscription task.
        self.size = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def service(self) -> WatchMultiplexer:
        return self._service

    async def block_until_exists(self, lifecycle: LifecycleController) -> None:
        await self._retire()

        # Register before checking, or a creation between the check and
        # the registration would never be seen.
        try:
            await lifecycle.guard(self._service.watch(self.filename))
            try:
                os.stat(self.filename)
                return
            except FileNotFoundError:
                pass

            subscription = self._service.events(self.filename)
            if subscription is None:
                raise WatchServiceError(f"Watch for {self.filename} vanished")
            while True:
                event = await lifecycle.guard(subscription.get())
                if event is None:
                    raise WatchServiceError("Native watcher has been closed")
                if event.kind in (WatchEventKind.CREATED, WatchEventKind.MODIFIED):
                    return
        finally:
            await self._service.remove_watch(self.filename)

    def change_events(
        self, lifecycle: LifecycleController, initial: os.stat_result
    ) -> ChangeSet:
        changes = ChangeSet()
        self.size = initial.st_size
        previous = self._task
        self._task = asyncio.create_task(
            self._watch_loop(lifecycle, initial, changes, previous),
            name=f"watch:{self.filename}",
        )
        return changes

    async def close(self) -> None:
        await self._retire()

    async def _retire(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            await _finish(task)

    async def _watch_loop(
        self,
        lifecycle: LifecycleController,
        initial: os.stat_result,
        changes: ChangeSet,
        previous: asyncio.Task[None] | None,
    ) -> None:
        if previous is not None:
            await _finish(previous)

        registered = False
        try:
            try:
                await lifecycle.guard(self._service.watch(self.filename))
            except WatchServiceError as e:
                log.error("Error watching %s: %s", self.filename, e)
                lifecycle.kill(e)
                return
            registered = True

            subscription = self._service.events(self.filename)
            if subscription is None:
                lifecycle.kill(WatchServiceError(f"Watch for {self.filename} vanished"))
                return

            # Anything written between the reader's EOF and the registration
            # above produced no event; compare against the snapshot instead.
            if not self._check(lifecycle, initial, changes, initial.st_size, fresh=True):
                return

            while not changes.closed:
                event = await lifecycle.guard(subscription.get())
                if event is None:
                    if not changes.closed:
                        lifecycle.kill(WatchServiceError("Native watcher has been closed"))
                    return
                if event.kind in (WatchEventKind.DELETED, WatchEventKind.RENAMED):
                    changes.notify_deleted()
                    return
                if not self._check(lifecycle, initial, changes, self.size):
                    return
        except Dying:
            pass
        finally:
            changes.close()
            if registered:
                await self._service.remove_watch(self.filename)

    def _check(
        self,
        lifecycle: LifecycleController,
        initial: os.stat_result,
        changes: ChangeSet,
        prev_size: int,
        fresh: bool = False,
    ) -> bool:
        """Stat the file and signal accordingly.

        Returns:
            False once a terminal condition has been signalled.
        """
        try:
            st = os.stat(self.filename)
        except FileNotFoundError:
            changes.notify_deleted()
            return False
        except OSError as e:
            log.error("Failed to stat %s: %s", self.filename, e)
            lifecycle.kill(FatalIOError(f"Failed to stat {self.filename}", underlying=e))
            return False

        if not os.path.samestat(initial, st):
            changes.notify_deleted()
            return False

        self.size = st.st_size
        if st.st_size < prev_size:
            changes.notify_truncated()
            return False
        if not fresh or st.st_size != initial.st_size or st.st_mtime_ns != initial.st_mtime_ns:
            changes.notify_modified()
        return True


async def _finish(task: asyncio.Task[None]) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
