"""Rotation and truncation handling, with both watcher implementations."""

from __future__ import annotations

import asyncio

import pytest

from filetail.engine import LineKind, TailConfig, start_tail
from filetail.watching import WatchMultiplexer

from tests.utils import (
    FAST_POLL,
    append,
    collect,
    collect_texts,
    remove,
    rename,
    truncate_and_write,
)


@pytest.fixture(params=["poll", "native"])
def make_config(request):
    def make(**kwargs) -> TailConfig:
        if request.param == "poll":
            return TailConfig(follow=True, poll=True, poll_interval=FAST_POLL, **kwargs)
        return TailConfig(follow=True, **kwargs)

    return make


class TestReopen:
    """Files deleted or renamed away are reopened."""

    @pytest.mark.asyncio
    async def test_delete_and_recreate(self, log_file, make_config) -> None:
        """Resume at the start of the new file without repeating old content."""
        tail = start_tail(log_file, make_config(reopen=True))
        try:
            assert await collect_texts(tail, 2) == ["hello", "world"]

            remove(log_file)
            await asyncio.sleep(0.1)
            log_file.write_bytes(b"fresh\nstart\n")

            lines = await collect(tail, 2)
            assert [line.text for line in lines] == ["fresh", "start"]
            assert [line.offset for line in lines] == [0, 6]
        finally:
            assert await tail.stop() is None

    @pytest.mark.asyncio
    async def test_rename_rotation(self, log_file, tmp_path, make_config) -> None:
        tail = start_tail(log_file, make_config(reopen=True))
        try:
            assert await collect_texts(tail, 2) == ["hello", "world"]

            rename(log_file, tmp_path / "app.log.1")
            log_file.write_bytes(b"rotated\n")

            assert await collect_texts(tail, 1) == ["rotated"]
            append(log_file, b"again\n")
            assert await collect_texts(tail, 1) == ["again"]
        finally:
            await tail.stop()

    @pytest.mark.asyncio
    async def test_repeated_rotation(self, log_file, tmp_path, make_config) -> None:
        tail = start_tail(log_file, make_config(reopen=True))
        try:
            await collect_texts(tail, 2)
            for generation in range(3):
                rename(log_file, tmp_path / f"app.log.{generation}")
                log_file.write_bytes(f"gen{generation}\n".encode())
                assert await collect_texts(tail, 1) == [f"gen{generation}"]
        finally:
            await tail.stop()

    @pytest.mark.asyncio
    async def test_new_file_record(self, log_file, tmp_path) -> None:
        """With notifications on, a reopen is announced before the new lines."""
        config = TailConfig(
            follow=True,
            reopen=True,
            poll=True,
            poll_interval=FAST_POLL,
            notify_interval=30.0,
        )
        tail = start_tail(log_file, config)
        try:
            await collect(tail, 2)
            rename(log_file, tmp_path / "app.log.1")
            log_file.write_bytes(b"next\n")

            marker, line = await collect(tail, 2)
            assert marker.kind is LineKind.NEW_FILE
            assert marker.opened_at is not None
            assert line.text == "next"
            assert line.opened_at == marker.opened_at
        finally:
            await tail.stop()

    @pytest.mark.asyncio
    async def test_reopen_delay(self, log_file, make_config) -> None:
        tail = start_tail(log_file, make_config(reopen=True, reopen_delay=0.05))
        try:
            await collect_texts(tail, 2)
            remove(log_file)
            await asyncio.sleep(0.1)
            log_file.write_bytes(b"later\n")
            assert await collect_texts(tail, 1) == ["later"]
        finally:
            await tail.stop()


class TestTruncation:
    """Truncation restarts from the beginning, reopen or not."""

    @pytest.mark.asyncio
    async def test_truncate_and_rewrite(self, tmp_path, make_config) -> None:
        path = tmp_path / "trunc.log"
        path.write_bytes(b"0123456789\nabcdefghij\n")
        tail = start_tail(path, make_config())
        try:
            assert await collect_texts(tail, 2) == ["0123456789", "abcdefghij"]

            truncate_and_write(path, b"new\n")
            (line,) = await collect(tail, 1)
            assert line.text == "new"
            assert line.offset == 0

            append(path, b"after\n")
            (line,) = await collect(tail, 1)
            assert line.text == "after"
            assert line.offset == 4
        finally:
            await tail.stop()

    @pytest.mark.asyncio
    async def test_truncate_with_reopen(self, tmp_path, make_config) -> None:
        path = tmp_path / "trunc.log"
        path.write_bytes(b"0123456789\n")
        tail = start_tail(path, make_config(reopen=True))
        try:
            await collect_texts(tail, 1)
            truncate_and_write(path, b"x\n")
            assert await collect_texts(tail, 1) == ["x"]
        finally:
            await tail.stop()


class TestSharedService:
    """Several tails over one watch service."""

    @pytest.mark.asyncio
    async def test_two_files_one_service(self, tmp_path) -> None:
        service = WatchMultiplexer()
        a = tmp_path / "a.log"
        b = tmp_path / "b.log"
        a.write_bytes(b"")
        b.write_bytes(b"")

        tail_a = start_tail(a, TailConfig(follow=True, watch_service=service))
        tail_b = start_tail(b, TailConfig(follow=True, watch_service=service))
        try:
            await asyncio.sleep(0.1)
            append(a, b"from a\n")
            append(b, b"from b\n")

            assert await collect_texts(tail_a, 1) == ["from a"]
            assert await collect_texts(tail_b, 1) == ["from b"]
        finally:
            await tail_a.stop()
            await tail_b.stop()
            # Tails never close a service they were given.
            assert service.running
            await service.close()
