"""The tail engine: follows one file and emits its lines in order.

A Tail runs as a single asyncio task that exclusively owns the open file,
its buffered reader and the read offset. It cycles through

    open -> read -> (EOF) wait for change -> read ... -> reopen -> read ...

until the file ends (follow disabled), disappears for good (reopen
disabled), a fatal I/O error occurs, or stop() is called.

Example:
    tail = Tail("/var/log/app.log", TailConfig(follow=True, reopen=True))
    tail.start()
    async for line in tail.lines:
        print(line.text)
    err = await tail.wait()
"""

from __future__ import annotations

import asyncio
import io
import os
from datetime import datetime, timezone

from filetail.engine.line import Line, LineKind
from filetail.engine.options import TailConfig
from filetail.engine.stream import LineStream
from filetail.errors import (
    Dying,
    FatalIOError,
    RateLimitEngaged,
    StartupError,
    TailError,
    WatchServiceError,
)
from filetail.lifecycle import LifecycleController
from filetail.logging import TRACE, get_logger
from filetail.watching.changes import ChangeKind, ChangeSet
from filetail.watching.multiplexer import WatchMultiplexer
from filetail.watching.native import NativeWatcher
from filetail.watching.polling import PollingWatcher
from filetail.watching.protocol import FileWatcher

COOLOFF_MESSAGE = "Too much log activity; waiting a second before resuming tailing"


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _strip_terminator(raw: bytes) -> bytes:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


class Tail:
    """Tails one file according to a TailConfig."""

    def __init__(
        self, filename: str | os.PathLike[str], config: TailConfig | None = None
    ) -> None:
        """Validate the configuration and choose a watcher.

        Raises:
            StartupError: the configuration is inconsistent.
        """
        self.filename = os.fspath(filename)
        self.config = config or TailConfig()
        self.config.validate()

        self.lines = LineStream()
        self._lifecycle = LifecycleController()
        self._log = self.config.logger or get_logger("tail")

        self._file: io.BufferedReader | None = None
        self._opened_at: datetime | None = None
        self._changes: ChangeSet | None = None
        self._task: asyncio.Task[None] | None = None
        self._owned_service: WatchMultiplexer | None = None
        # Loop time of the next ticker record, when notify_interval is set
        self._next_tick: float | None = None
        self.watcher = self._make_watcher()

    def _make_watcher(self) -> FileWatcher:
        if self.config.poll:
            return PollingWatcher(self.filename, self.config.poll_interval)
        service = self.config.watch_service
        if service is None:
            service = self._owned_service = WatchMultiplexer()
        return NativeWatcher(self.filename, service)

    # -------------------------------------------------------------------------
    # Public surface
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Begin tailing in a background task.

        Must be called from within a running event loop.

        Raises:
            StartupError: must_exist is set and the file cannot be opened.
        """
        if self._task is not None:
            return

        if self.config.must_exist:
            try:
                self._file = self._open_file()
            except OSError as e:
                self.lines.close()
                self._lifecycle.done()
                raise StartupError(f"Unable to open {self.filename}", underlying=e) from e

        self._task = asyncio.create_task(self._run(), name=f"tail:{self.filename}")

    @property
    def err(self) -> BaseException | None:
        """The recorded termination cause; None while running or after a normal stop."""
        return self._lifecycle.err

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tell(self) -> int:
        """Best-effort current read position.

        May lag what the consumer has seen by one line.
        """
        f = self._file
        if f is None or f.closed:
            return 0
        try:
            return f.tell()
        except (OSError, ValueError):
            return 0

    def kill(self, reason: BaseException | None = None) -> None:
        """Request termination without waiting for it."""
        self._lifecycle.kill(reason)

    async def wait(self) -> BaseException | None:
        """Wait for the tail to finish.

        Returns:
            None after a normal stop, otherwise the fatal error.
        """
        if self._task is None:
            return self._lifecycle.err
        return await self._lifecycle.wait()

    async def stop(self) -> BaseException | None:
        """Stop tailing and wait until everything has been released."""
        self._lifecycle.kill()
        return await self.wait()

    async def cleanup(self) -> None:
        """Release native watches held for this tail."""
        await self.watcher.close()
        if self._owned_service is not None:
            await self._owned_service.close()

    # -------------------------------------------------------------------------
    # Engine
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            if self.config.notify_interval is not None:
                self._next_tick = asyncio.get_running_loop().time() + self.config.notify_interval

            if self._file is None:
                await self._reopen()

            location = self.config.location
            if location is not None:
                assert self._file is not None
                try:
                    self._file.seek(location.offset, location.whence)
                except OSError as e:
                    raise FatalIOError(f"Seek error on {self.filename}", underlying=e) from e
                self._log.log(TRACE, "Seeked %s to %s", self.filename, location)

            await self._tail_file()
        except Dying:
            pass
        except TailError as e:
            self._log.error("%s", e)
            self._lifecycle.kill(e)
        except OSError as e:
            err = FatalIOError(f"Error tailing {self.filename}", underlying=e)
            self._log.error("%s", err)
            self._lifecycle.kill(err)
        except Exception as e:
            self._log.exception("Unexpected error tailing %s", self.filename)
            self._lifecycle.kill(e)
        finally:
            await self._finish()

    async def _finish(self) -> None:
        self.lines.close()
        self._close_file()
        self._changes = None
        try:
            await self.cleanup()
        finally:
            self._lifecycle.done()

    def _open_file(self) -> io.BufferedReader:
        f = open(self.filename, "rb", buffering=self.config.buffer_size)
        self._opened_at = _now()
        return f

    def _close_file(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    async def _reopen(self) -> None:
        """Open the path, waiting for it to appear if necessary."""
        self._close_file()
        while True:
            try:
                self._file = self._open_file()
                return
            except FileNotFoundError:
                pass
            except OSError as e:
                raise FatalIOError(f"Unable to open file {self.filename}", underlying=e) from e

            self._log.info("Waiting for %s to appear...", self.filename)
            try:
                await self.watcher.block_until_exists(self._lifecycle)
            except (OSError, WatchServiceError) as e:
                raise FatalIOError(
                    f"Failed to detect creation of {self.filename}", underlying=e
                ) from e

    def _read_line(self) -> tuple[bytes, bool]:
        """Read the next line or chunk.

        Returns:
            The bytes read and whether they form a complete record. An
            incomplete record means EOF was reached mid-line (or at a line
            boundary, when the bytes are empty).
        """
        assert self._file is not None
        limit = self.config.max_line_size
        raw = self._file.readline(limit if limit > 0 else -1)
        if raw.endswith(b"\n"):
            return raw, True
        if limit > 0 and len(raw) == limit:
            # A full chunk; swallow a terminator that directly follows it.
            following = self._file.peek(1)[:1]
            if not following:
                # Ends at EOF: the terminator may still be on its way.
                return raw, False
            if following == b"\n":
                self._file.read(1)
            return raw, True
        return raw, False

    async def _tail_file(self) -> None:
        while True:
            if not self._lifecycle.alive:
                raise Dying()

            assert self._file is not None
            offset = self._file.tell()
            try:
                raw, complete = self._read_line()
            except OSError as e:
                raise FatalIOError(f"Error reading {self.filename}", underlying=e) from e

            if complete:
                await self._send_line(_strip_terminator(raw), offset)
                continue

            if not self.config.follow:
                if raw:
                    await self._send_line(raw, offset)
                return

            if raw:
                # Re-read the whole line once the rest of it is written.
                self._seek(offset, os.SEEK_SET)

            if not await self._wait_for_changes():
                return

    async def _send(self, line: Line) -> None:
        await self._lifecycle.guard(self.lines.send(line))

    async def _send_line(self, raw: bytes, offset: int) -> None:
        await self._send(
            Line(raw, self.filename, offset, opened_at=self._opened_at)
        )

        limiter = self.config.rate_limiter
        if limiter is None or limiter.pour(1):
            return

        self._log.warning(
            "Rate limit reached on %s; entering %.1fs cooloff",
            self.filename,
            self.config.cooloff,
        )
        await self._send(
            Line(
                COOLOFF_MESSAGE.encode(),
                self.filename,
                self.tell(),
                opened_at=self._opened_at,
                err=RateLimitEngaged(COOLOFF_MESSAGE),
            )
        )
        await self._lifecycle.sleep(self.config.cooloff)
        # Skip the backlog written during the storm.
        self._seek(0, os.SEEK_END)

    def _seek(self, offset: int, whence: int) -> None:
        assert self._file is not None
        try:
            self._file.seek(offset, whence)
        except OSError as e:
            raise FatalIOError(f"Seek error on {self.filename}", underlying=e) from e

    async def _wait_for_changes(self) -> bool:
        """Wait at EOF until the file changes.

        Returns:
            False if tailing should stop normally.
        """
        assert self._file is not None
        if self._changes is None:
            try:
                st = os.fstat(self._file.fileno())
            except OSError as e:
                raise FatalIOError(f"Failed to stat {self.filename}", underlying=e) from e

            if st.st_size < self._file.tell():
                self._log.info("Re-opening truncated file %s ...", self.filename)
                await self._reopen_changed()
                return True
            self._changes = self.watcher.change_events(self._lifecycle, st)

        while True:
            timeout = self._until_tick()
            if timeout is not None and timeout <= 0:
                await self._send_ticker()
                continue
            try:
                kind = await self._lifecycle.guard(
                    asyncio.wait_for(self._changes.wait(), timeout=timeout)
                )
                break
            except asyncio.TimeoutError:
                await self._send_ticker()

        if kind is ChangeKind.MODIFIED:
            return True

        self._changes = None
        if kind is ChangeKind.TRUNCATED:
            self._log.info("Re-opening truncated file %s ...", self.filename)
            await self._reopen_changed()
            self._log.info("Successfully reopened truncated %s", self.filename)
            return True

        if not self.config.reopen:
            self._log.info("Stopping tail as file no longer exists: %s", self.filename)
            return False

        self._log.info("Re-opening moved/deleted file %s ...", self.filename)
        if self.config.reopen_delay > 0:
            await self._lifecycle.sleep(self.config.reopen_delay)
        await self._reopen_changed()
        self._log.info("Successfully reopened %s", self.filename)
        return True

    def _until_tick(self) -> float | None:
        if self._next_tick is None:
            return None
        return self._next_tick - asyncio.get_running_loop().time()

    async def _send_ticker(self) -> None:
        """Emit a heartbeat and schedule the next one.

        Tickers run on a fixed period, independent of how often the file
        changes in between.
        """
        assert self._next_tick is not None and self.config.notify_interval is not None
        now = asyncio.get_running_loop().time()
        self._next_tick += self.config.notify_interval
        if self._next_tick <= now:
            # Missed periods while the consumer was slow are not replayed.
            self._next_tick = now + self.config.notify_interval
        await self._send(
            Line(b"", self.filename, self.tell(), kind=LineKind.TICKER, opened_at=self._opened_at)
        )

    async def _reopen_changed(self) -> None:
        self._changes = None
        await self._reopen()
        if self.config.notify_interval is not None:
            await self._send(
                Line(b"", self.filename, 0, kind=LineKind.NEW_FILE, opened_at=self._opened_at)
            )


def start_tail(filename: str | os.PathLike[str], config: TailConfig | None = None) -> Tail:
    """Create a Tail and start it.

    Raises:
        StartupError: invalid configuration, or a missing must_exist file.
    """
    tail = Tail(filename, config)
    tail.start()
    return tail
