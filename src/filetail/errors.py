"""Exception types raised (or recorded) by filetail."""

from __future__ import annotations


class TailError(Exception):
    """Base exception for filetail.

    Carries the low-level exception that caused it, when there is one.
    """

    def __init__(self, message: str, *, underlying: BaseException | None = None) -> None:
        super().__init__(message)
        self.underlying = underlying

    def __str__(self) -> str:
        if self.underlying is not None:
            return f"{self.args[0]} (caused by {self.underlying})"
        return str(self.args[0])


class StartupError(TailError):
    """Invalid configuration, or a MustExist file that is missing.

    Raised synchronously by start; no task has been spawned.
    """


class FatalIOError(TailError):
    """A non-EOF open/read/seek/stat failure that terminated a tail."""


class WatchServiceError(TailError):
    """The native watch resource could not be created or a path not registered."""


class RateLimitEngaged(TailError):
    """Attached to the warning line emitted when the rate limiter rejects a line."""


class Dying(Exception):
    """Raised out of a guarded wait once the owning lifecycle has been killed."""
