"""The capability every file watcher implementation offers the tail engine."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from filetail.lifecycle import LifecycleController
    from filetail.watching.changes import ChangeSet


@runtime_checkable
class FileWatcher(Protocol):
    """Monitors one file path for creation and liveness changes."""

    filename: str

    async def block_until_exists(self, lifecycle: LifecycleController) -> None:
        """Return once the file exists.

        Returns immediately if it already does.

        Raises:
            Dying: the lifecycle was killed while waiting.
            OSError: the existence check failed for a reason other than
                the file being absent.
        """
        ...

    def change_events(
        self, lifecycle: LifecycleController, initial: os.stat_result
    ) -> ChangeSet:
        """Start watching the open file described by ``initial``.

        Returns a ChangeSet the watcher populates in the background until a
        terminal change occurs or the lifecycle is killed.
        """
        ...

    async def close(self) -> None:
        """Release anything the watcher still holds."""
        ...
