"""Shared test utilities for filetail tests."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from filetail.engine import Line, LineKind, Tail

# Generous upper bound for anything that should happen "soon"
TIMEOUT = 5.0

# Fast sampling so polling tests finish quickly
FAST_POLL = 0.02


def append(path: Path, data: bytes) -> None:
    with open(path, "ab") as f:
        f.write(data)


def truncate_and_write(path: Path, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def remove(path: Path) -> None:
    os.remove(path)


def rename(src: Path, dest: Path) -> None:
    os.rename(src, dest)


async def next_line(tail: Tail, timeout: float = TIMEOUT) -> Line | None:
    """The next record from ``tail``, or None if the stream closed."""
    return await asyncio.wait_for(tail.lines.get(), timeout)


async def collect(tail: Tail, count: int, timeout: float = TIMEOUT) -> list[Line]:
    """Read ``count`` records, failing the test if they don't arrive in time."""
    lines: list[Line] = []
    while len(lines) < count:
        line = await next_line(tail, timeout)
        if line is None:
            break
        lines.append(line)
    return lines


async def collect_texts(tail: Tail, count: int, timeout: float = TIMEOUT) -> list[str]:
    """Like collect() but keeps only the text of NEW_LINE records."""
    texts: list[str] = []
    while len(texts) < count:
        line = await next_line(tail, timeout)
        if line is None:
            break
        if line.kind is LineKind.NEW_LINE:
            texts.append(line.text)
    return texts


async def drain(tail: Tail, timeout: float = TIMEOUT) -> list[Line]:
    """Read until the stream closes."""
    lines: list[Line] = []
    while True:
        line = await next_line(tail, timeout)
        if line is None:
            return lines
        lines.append(line)


async def assert_quiet(tail: Tail, period: float = 0.2) -> None:
    """Assert no record arrives within ``period`` seconds."""
    try:
        line = await asyncio.wait_for(tail.lines.get(), period)
    except asyncio.TimeoutError:
        return
    raise AssertionError(f"unexpected record: {line!r}")


async def eventually(predicate, timeout: float = TIMEOUT, interval: float = 0.01) -> None:
    """Poll ``predicate`` until it is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)
