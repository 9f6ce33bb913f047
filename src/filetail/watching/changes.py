"""The Modified/Deleted/Truncated signal triad for a watched file."""

from __future__ import annotations

import asyncio
from enum import Enum


class ChangeKind(Enum):
    """What happened to a watched file."""

    MODIFIED = "modified"
    DELETED = "deleted"
    TRUNCATED = "truncated"


class ChangeSet:
    """Liveness signals for one open file.

    Modified is level-triggered and coalescing: any number of notifications
    between two waits wake the waiter once. Deleted and Truncated are
    terminal: the first of them closes the set and every later notification
    is dropped.
    """

    def __init__(self) -> None:
        self._modified = asyncio.Event()
        self._deleted = asyncio.Event()
        self._truncated = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def notify_modified(self) -> None:
        if not self._closed:
            self._modified.set()

    def notify_deleted(self) -> None:
        if not self._closed:
            self._deleted.set()
            self.close()

    def notify_truncated(self) -> None:
        if not self._closed:
            self._truncated.set()
            self.close()

    def close(self) -> None:
        """Stop accepting notifications. Idempotent."""
        self._closed = True

    def pending(self) -> ChangeKind | None:
        """Consume and return the next pending change, if any.

        A pending Modified is reported before a terminal change so data
        written just before a delete or truncate is still drained from the
        open handle.
        """
        if self._modified.is_set():
            self._modified.clear()
            return ChangeKind.MODIFIED
        if self._truncated.is_set():
            return ChangeKind.TRUNCATED
        if self._deleted.is_set():
            return ChangeKind.DELETED
        return None

    async def wait(self) -> ChangeKind:
        """Wait for the next change and consume it."""
        while True:
            kind = self.pending()
            if kind is not None:
                return kind

            waiters = [
                asyncio.ensure_future(event.wait())
                for event in (self._modified, self._deleted, self._truncated)
            ]
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for waiter in waiters:
                    waiter.cancel()
