"""Rendezvous channel carrying Line records from a tail to its consumer."""

from __future__ import annotations

import asyncio

from filetail.engine.line import Line


class LineStream:
    """An async iterator of Line records.

    ``send()`` returns only once the consumer has taken the record, so a
    slow consumer slows the tail down instead of letting records pile up.
    ``close()`` ends iteration after any record already handed over.

    Example:
        async for line in tail.lines:
            print(line.text)
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Line] = asyncio.Queue(maxsize=1)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Close the stream. Idempotent."""
        self._closed.set()

    async def send(self, line: Line) -> None:
        if self._closed.is_set():
            raise RuntimeError("send on closed LineStream")
        await self._queue.put(line)
        await self._queue.join()

    async def get(self) -> Line | None:
        """Take the next record, or None once the stream is closed and empty."""
        if self._queue.empty():
            if self._closed.is_set():
                return None

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                if getter.done() and not getter.cancelled():
                    # Taken in the same step we were cancelled; hand it back.
                    self._queue.put_nowait(getter.result())
                    self._queue.task_done()
                raise
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()
            if not getter.done() or getter.cancelled():
                return None
            line = getter.result()
        else:
            line = self._queue.get_nowait()

        self._queue.task_done()
        return line

    def __aiter__(self) -> LineStream:
        return self

    async def __anext__(self) -> Line:
        line = await self.get()
        if line is None:
            raise StopAsyncIteration
        return line
