"""Runtime options for a single tail."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from filetail.errors import StartupError
from filetail.watching.polling import DEFAULT_POLL_INTERVAL

if TYPE_CHECKING:
    from filetail.ratelimit.bucket import LeakyBucket
    from filetail.watching.multiplexer import WatchMultiplexer

_WHENCE = (os.SEEK_SET, os.SEEK_CUR, os.SEEK_END)

# Buffer size used when no max_line_size is configured
DEFAULT_BUFFER_SIZE = 64 * 1024

# Seconds to pause after the rate limiter rejects a line
DEFAULT_COOLOFF = 1.0


@dataclass(frozen=True)
class SeekInfo:
    """Where to position the file on its first open (arguments to seek())."""

    offset: int = 0
    whence: int = os.SEEK_SET

    @classmethod
    def start(cls) -> SeekInfo:
        return cls(0, os.SEEK_SET)

    @classmethod
    def end(cls, offset: int = 0) -> SeekInfo:
        return cls(offset, os.SEEK_END)


@dataclass
class TailConfig:
    """How a file must be tailed.

    Attributes:
        location: Seek here on the first open only. None reads from the start.
        follow: Keep waiting for new lines at EOF (tail -f).
        reopen: Reopen the path when the file is deleted or renamed (tail -F).
            Requires follow.
        reopen_delay: Seconds to wait before reopening a deleted file.
        must_exist: Fail at start if the file does not exist.
        poll: Use the polling watcher instead of native notifications.
        poll_interval: Seconds between samples of the polling watcher.
        max_line_size: Split lines longer than this many bytes. 0 disables.
        notify_interval: Emit a ticker record after this many idle seconds.
        rate_limiter: Bucket receiving one token per emitted line.
        cooloff: Seconds to pause when the rate limiter rejects a line.
        logger: Where the tail logs. Defaults to the "filetail.tail" logger.
        watch_service: Shared native watch service. A private one is created
            when poll is False and none is given.
    """

    location: SeekInfo | None = None
    follow: bool = False
    reopen: bool = False
    reopen_delay: float = 0.0
    must_exist: bool = False
    poll: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_line_size: int = 0
    notify_interval: float | None = None
    rate_limiter: LeakyBucket | None = None
    cooloff: float = DEFAULT_COOLOFF
    logger: logging.Logger | None = None
    watch_service: WatchMultiplexer | None = None

    def validate(self) -> None:
        """Reject inconsistent settings.

        Raises:
            StartupError: on the first invalid setting found.
        """
        if self.reopen and not self.follow:
            raise StartupError("cannot set reopen without follow")
        if self.max_line_size < 0:
            raise StartupError("max_line_size must not be negative")
        if self.reopen_delay < 0:
            raise StartupError("reopen_delay must not be negative")
        if self.poll_interval <= 0:
            raise StartupError("poll_interval must be positive")
        if self.notify_interval is not None and self.notify_interval <= 0:
            raise StartupError("notify_interval must be positive")
        if self.cooloff < 0:
            raise StartupError("cooloff must not be negative")
        if self.location is not None and self.location.whence not in _WHENCE:
            raise StartupError(f"invalid seek whence: {self.location.whence}")

    @property
    def buffer_size(self) -> int:
        """Reader buffer size: room for a maximal line plus its terminator."""
        if self.max_line_size > 0:
            return max(self.max_line_size + 2, 16)
        return DEFAULT_BUFFER_SIZE
