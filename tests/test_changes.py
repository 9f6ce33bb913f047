"""Tests for the ChangeSet signal triad."""

from __future__ import annotations

import asyncio

import pytest

from filetail.watching import ChangeKind, ChangeSet


class TestChangeSet:
    """Coalescing and terminal behaviour of change notifications."""

    def test_nothing_pending_initially(self) -> None:
        changes = ChangeSet()
        assert changes.pending() is None
        assert not changes.closed

    def test_modified_coalesces(self) -> None:
        """Many modifications between two waits wake the waiter once."""
        changes = ChangeSet()
        for _ in range(5):
            changes.notify_modified()
        assert changes.pending() is ChangeKind.MODIFIED
        assert changes.pending() is None

    def test_deleted_is_terminal(self) -> None:
        changes = ChangeSet()
        changes.notify_deleted()
        changes.notify_truncated()
        changes.notify_modified()

        assert changes.closed
        assert changes.pending() is ChangeKind.DELETED
        # Terminal signals stay visible
        assert changes.pending() is ChangeKind.DELETED

    def test_truncated_is_terminal(self) -> None:
        changes = ChangeSet()
        changes.notify_truncated()
        changes.notify_deleted()
        assert changes.pending() is ChangeKind.TRUNCATED

    def test_modified_reported_before_terminal(self) -> None:
        """Data written just before a delete is drained first."""
        changes = ChangeSet()
        changes.notify_modified()
        changes.notify_deleted()
        assert changes.pending() is ChangeKind.MODIFIED
        assert changes.pending() is ChangeKind.DELETED

    def test_close_drops_later_notifications(self) -> None:
        changes = ChangeSet()
        changes.close()
        changes.close()
        changes.notify_modified()
        changes.notify_deleted()
        assert changes.pending() is None

    @pytest.mark.asyncio
    async def test_wait_wakes_on_notification(self) -> None:
        changes = ChangeSet()
        waiter = asyncio.create_task(changes.wait())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        changes.notify_truncated()
        assert await asyncio.wait_for(waiter, 1.0) is ChangeKind.TRUNCATED

    @pytest.mark.asyncio
    async def test_wait_returns_pending_immediately(self) -> None:
        changes = ChangeSet()
        changes.notify_modified()
        assert await asyncio.wait_for(changes.wait(), 1.0) is ChangeKind.MODIFIED
