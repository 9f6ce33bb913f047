"""The tail engine and the records it emits."""

from filetail.engine.line import Line, LineKind
from filetail.engine.options import DEFAULT_BUFFER_SIZE, DEFAULT_COOLOFF, SeekInfo, TailConfig
from filetail.engine.stream import LineStream
from filetail.engine.tail import COOLOFF_MESSAGE, Tail, start_tail

__all__ = [
    "COOLOFF_MESSAGE",
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_COOLOFF",
    "Line",
    "LineKind",
    "LineStream",
    "SeekInfo",
    "Tail",
    "TailConfig",
    "start_tail",
]
