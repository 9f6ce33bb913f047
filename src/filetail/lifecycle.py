"""Cooperative cancellation and completion for a tail and its helpers.

A LifecycleController bundles three things:

- a kill signal (``dying``) every suspension point observes,
- a write-once cell recording the first termination cause,
- a completion barrier other tasks can ``await``.

Cancellation is cooperative: a kill never interrupts code that is running,
it is only seen by ``guard()``/``sleep()`` at the points that wait.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from filetail.errors import Dying

T = TypeVar("T")


class LifecycleController:
    """Kill signal + first-error memory + completion barrier."""

    def __init__(self) -> None:
        self._dying = asyncio.Event()
        self._finished = asyncio.Event()
        self._err: BaseException | None = None
        self._killed = False

    @property
    def dying(self) -> asyncio.Event:
        """Event set once kill() has been called."""
        return self._dying

    @property
    def alive(self) -> bool:
        return not self._dying.is_set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def err(self) -> BaseException | None:
        """The recorded termination cause (None for a normal stop)."""
        return self._err

    def kill(self, reason: BaseException | None = None) -> None:
        """Request termination.

        The first call records ``reason``; an error passed to a later call
        replaces a previously recorded None so a fatal error is never masked
        by an earlier graceful request.
        """
        if not self._killed:
            self._killed = True
            self._err = reason
        elif self._err is None and reason is not None and not self.finished:
            self._err = reason
        self._dying.set()

    def done(self) -> None:
        """Mark the owning work as complete. Implies kill()."""
        self.kill()
        self._finished.set()

    async def wait(self) -> BaseException | None:
        """Block until done() is called and return the termination cause."""
        await self._finished.wait()
        return self._err

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the lifecycle is killed first.

        Raises:
            Dying: when the kill signal fires before the awaitable completes.
                The awaitable is cancelled.
        """
        if self._dying.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise Dying()

        work = asyncio.ensure_future(awaitable)
        killed = asyncio.ensure_future(self._dying.wait())
        try:
            await asyncio.wait({work, killed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            killed.cancel()
            if not work.done():
                work.cancel()
                try:
                    await work
                except (asyncio.CancelledError, Exception):
                    pass

        if work.cancelled():
            raise Dying()
        return work.result()

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, raising Dying if killed meanwhile."""
        await self.guard(asyncio.sleep(seconds))
