"""One native watch resource shared by many watched files.

Native notification facilities are cheapest run as a single instance per
process. WatchMultiplexer owns one ``watchdog`` observer and fans its events
out to per-file subscriptions.

A single worker task serializes everything that touches the native resource:

1. add-watch requests (register the parent directory, create the
   subscription, reply with the registration result),
2. remove-watch requests (unregister, close the subscription),
3. native events (route by path to the subscription).

The observer thread never touches the routing table; it only posts events
onto the worker's request queue through the event loop.
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from filetail.errors import WatchServiceError
from filetail.logging import TRACE, get_logger

log = get_logger("watching.multiplexer")

# Events buffered per subscription before delivery blocks the worker
DEFAULT_QUEUE_SIZE = 64


class WatchEventKind(Enum):
    """Kinds of native events routed to subscribers."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"  # moved away from the watched path


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A native event for one path."""

    path: str
    kind: WatchEventKind


class WatchSubscription:
    """The per-file event channel handed out by ``WatchMultiplexer.events``.

    ``get()`` returns None once the subscription has been removed and every
    buffered event has been consumed.
    """

    def __init__(self, path: str, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.path = path
        self._queue: asyncio.Queue[WatchEvent] = asyncio.Queue(maxsize=queue_size)
        # Set at the start of removal so a blocked delivery gives up.
        self.done = asyncio.Event()
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self.done.set()
        self._closed.set()

    async def put(self, event: WatchEvent) -> bool:
        """Deliver an event unless the subscription is being removed.

        Returns:
            True if the event was queued.
        """
        if self.done.is_set():
            return False
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            pass

        putter = asyncio.ensure_future(self._queue.put(event))
        abandon = asyncio.ensure_future(self.done.wait())
        try:
            await asyncio.wait({putter, abandon}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            abandon.cancel()
            if not putter.done():
                putter.cancel()
        return putter.done() and not putter.cancelled()

    async def get(self) -> WatchEvent | None:
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._closed.is_set():
            return None

        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closer.cancel()
            if not getter.done():
                getter.cancel()
        if getter.done() and not getter.cancelled():
            return getter.result()
        return None

    def __aiter__(self) -> WatchSubscription:
        return self

    async def __anext__(self) -> WatchEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class _Forwarder(FileSystemEventHandler):
    """Runs in the observer thread; converts watchdog events and posts them."""

    def __init__(self, post: Callable[[Any], None]) -> None:
        super().__init__()
        self._post = post

    def dispatch(self, event: FileSystemEvent) -> None:
        try:
            super().dispatch(event)
        except Exception as e:
            self._post(_NativeError(e))

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        src = os.fsdecode(event.src_path)
        if event.event_type == "created":
            self._post(WatchEvent(src, WatchEventKind.CREATED))
        elif event.event_type == "modified":
            self._post(WatchEvent(src, WatchEventKind.MODIFIED))
        elif event.event_type == "deleted":
            self._post(WatchEvent(src, WatchEventKind.DELETED))
        elif event.event_type == "moved":
            self._post(WatchEvent(src, WatchEventKind.RENAMED))
            dest = getattr(event, "dest_path", None)
            if dest:
                self._post(WatchEvent(os.fsdecode(dest), WatchEventKind.CREATED))


@dataclass
class _AddWatch:
    path: str
    reply: asyncio.Future[None]


@dataclass
class _RemoveWatch:
    path: str
    reply: asyncio.Future[None]


@dataclass
class _NativeError:
    error: BaseException


@dataclass
class _DirectoryWatch:
    handle: Any  # watchdog ObservedWatch
    paths: set[str] = field(default_factory=set)


_SHUTDOWN = object()


def is_benign(error: BaseException) -> bool:
    """Interrupted system calls are retried by the observer; don't log them."""
    return isinstance(error, InterruptedError)


class WatchMultiplexer:
    """Shared native watch service.

    Construct one per process (or per group of tails) and pass it to every
    tail that should use native notifications.

    Example:
        service = WatchMultiplexer()
        await service.watch("/var/log/app.log")
        subscription = service.events("/var/log/app.log")
        async for event in subscription:
            ...
        await service.close()
    """

    def __init__(
        self,
        observer_factory: Callable[[], Any] = Observer,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._observer_factory = observer_factory
        self._queue_size = queue_size
        self._observer: Any = None
        self._forwarder: _Forwarder | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._requests: asyncio.Queue[Any] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._start_lock = asyncio.Lock()

        # Routing table: path -> subscription. Guarded by _mux.
        self._mux = threading.Lock()
        self._subscriptions: dict[str, WatchSubscription] = {}

        # Worker-only state
        self._directories: dict[str, _DirectoryWatch] = {}

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @staticmethod
    def normalize(path: str | os.PathLike[str]) -> str:
        return os.path.abspath(os.fspath(path))

    async def start(self) -> None:
        """Create the native resource and the worker task.

        Called lazily by watch(); safe to call more than once.

        Raises:
            WatchServiceError: the native resource could not be created.
        """
        async with self._start_lock:
            if self.running:
                return

            self._loop = asyncio.get_running_loop()
            try:
                observer = self._observer_factory()
                observer.start()
            except Exception as e:
                raise WatchServiceError("Error creating native watcher", underlying=e) from e

            self._observer = observer
            self._requests = asyncio.Queue()
            self._forwarder = _Forwarder(self._post)
            self._worker = asyncio.create_task(self._run(), name="watch-multiplexer")
            log.debug("Watch multiplexer started")

    async def watch(self, path: str | os.PathLike[str]) -> None:
        """Start routing native events for ``path``.

        Idempotent: watching an already watched path succeeds without
        creating a second subscription.

        Raises:
            WatchServiceError: the path could not be registered.
        """
        await self.start()
        assert self._loop is not None and self._requests is not None
        reply: asyncio.Future[None] = self._loop.create_future()
        self._requests.put_nowait(_AddWatch(self.normalize(path), reply))
        await reply

    async def remove_watch(self, path: str | os.PathLike[str]) -> None:
        """Stop routing events for ``path`` and close its subscription.

        A delivery blocked on this subscription is abandoned first so the
        worker never deadlocks against a consumer that stopped reading.
        """
        key = self.normalize(path)
        with self._mux:
            subscription = self._subscriptions.get(key)
        if not self.running:
            return

        if subscription is not None:
            subscription.done.set()
        assert self._loop is not None and self._requests is not None
        reply: asyncio.Future[None] = self._loop.create_future()
        self._requests.put_nowait(_RemoveWatch(key, reply))
        await reply

    cleanup = remove_watch

    def events(self, path: str | os.PathLike[str]) -> WatchSubscription | None:
        """Return the subscription for ``path``, or None if it is not watched."""
        with self._mux:
            return self._subscriptions.get(self.normalize(path))

    async def close(self) -> None:
        """Remove every watch and release the native resource."""
        if not self.running:
            return

        with self._mux:
            subscriptions = list(self._subscriptions.values())
        for subscription in subscriptions:
            subscription.done.set()

        assert self._requests is not None and self._worker is not None
        self._requests.put_nowait(_SHUTDOWN)
        await self._worker

        observer = self._observer
        self._observer = None
        if observer is not None:
            observer.stop()
            await asyncio.to_thread(observer.join)
        log.debug("Watch multiplexer closed")

    def _post(self, item: Any) -> None:
        """Hand an item from the observer thread to the worker."""
        loop = self._loop
        requests = self._requests
        if loop is None or requests is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(requests.put_nowait, item)
        except RuntimeError:
            # Loop shut down between the check and the call.
            log.log(TRACE, "Dropped native event after loop shutdown: %s", item)

    async def _run(self) -> None:
        assert self._requests is not None
        try:
            while True:
                request = await self._requests.get()
                if request is _SHUTDOWN:
                    return
                if isinstance(request, WatchEvent):
                    await self._deliver(request)
                elif isinstance(request, _AddWatch):
                    self._handle_add(request)
                elif isinstance(request, _RemoveWatch):
                    self._handle_remove(request)
                elif isinstance(request, _NativeError):
                    if not is_benign(request.error):
                        log.error("Error in native watcher: %s", request.error)
        finally:
            self._shutdown_subscriptions()

    def _handle_add(self, request: _AddWatch) -> None:
        if request.reply.done():
            return
        path = request.path

        with self._mux:
            if path in self._subscriptions:
                request.reply.set_result(None)
                return

        directory = os.path.dirname(path)
        try:
            entry = self._directories.get(directory)
            if entry is None:
                handle = self._observer.schedule(self._forwarder, directory, recursive=False)
                entry = _DirectoryWatch(handle)
                self._directories[directory] = entry
            entry.paths.add(path)
        except Exception as e:
            log.debug("Failed to watch %s: %s", path, e)
            request.reply.set_exception(
                WatchServiceError(f"Error watching {path}", underlying=e)
            )
            return

        with self._mux:
            self._subscriptions[path] = WatchSubscription(path, self._queue_size)
        log.debug("Watching %s", path)
        request.reply.set_result(None)

    def _handle_remove(self, request: _RemoveWatch) -> None:
        path = request.path
        with self._mux:
            subscription = self._subscriptions.pop(path, None)
        if subscription is not None:
            subscription.close()
            self._unschedule(path)
            log.debug("Removed watch for %s", path)
        if not request.reply.done():
            request.reply.set_result(None)

    def _unschedule(self, path: str) -> None:
        directory = os.path.dirname(path)
        entry = self._directories.get(directory)
        if entry is None:
            return
        entry.paths.discard(path)
        if entry.paths:
            return
        del self._directories[directory]
        try:
            self._observer.unschedule(entry.handle)
        except (KeyError, OSError) as e:
            log.debug("Failed to unschedule %s: %s", directory, e)

    async def _deliver(self, event: WatchEvent) -> None:
        with self._mux:
            subscription = self._subscriptions.get(event.path)
        if subscription is None:
            return
        log.log(TRACE, "Routing %s for %s", event.kind.value, event.path)
        await subscription.put(event)

    def _shutdown_subscriptions(self) -> None:
        with self._mux:
            subscriptions = list(self._subscriptions.items())
            self._subscriptions.clear()
        for path, subscription in subscriptions:
            subscription.close()
            self._unschedule(path)

        # Fail requests still queued so no caller waits forever.
        assert self._requests is not None
        while not self._requests.empty():
            request = self._requests.get_nowait()
            if isinstance(request, (_AddWatch, _RemoveWatch)) and not request.reply.done():
                if isinstance(request, _AddWatch):
                    request.reply.set_exception(WatchServiceError("Watch service closed"))
                else:
                    request.reply.set_result(None)
