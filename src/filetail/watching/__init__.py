"""File watching for filetail.

Two interchangeable FileWatcher implementations:

- PollingWatcher samples file metadata at a fixed interval.
- NativeWatcher subscribes to a shared WatchMultiplexer, which fans the
  events of one native watch resource (``watchdog``) out per file.
"""

from filetail.watching.changes import ChangeKind, ChangeSet
from filetail.watching.multiplexer import (
    WatchEvent,
    WatchEventKind,
    WatchMultiplexer,
    WatchSubscription,
)
from filetail.watching.native import NativeWatcher
from filetail.watching.polling import DEFAULT_POLL_INTERVAL, PollingWatcher
from filetail.watching.protocol import FileWatcher

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "ChangeKind",
    "ChangeSet",
    "FileWatcher",
    "NativeWatcher",
    "PollingWatcher",
    "WatchEvent",
    "WatchEventKind",
    "WatchMultiplexer",
    "WatchSubscription",
]
