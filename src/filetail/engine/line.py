"""Records emitted by a tail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class LineKind(Enum):
    """Why a record was emitted."""

    NEW_LINE = "new_line"
    NEW_FILE = "new_file"
    TICKER = "ticker"


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True, slots=True)
class Line:
    """One record from a tailed file.

    ``raw`` holds the line's bytes without its terminator. ``offset`` is the
    byte position where those bytes start (for ticker records: the current
    read position).
    """

    raw: bytes
    filename: str
    offset: int
    kind: LineKind = LineKind.NEW_LINE
    time: datetime = field(default_factory=_now)
    opened_at: datetime | None = None
    err: Exception | None = None

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        return self.text
