"""Exporter writing each value to a text stream (stdout by default)."""

from __future__ import annotations

import sys
from typing import TextIO

from .base import BaseExporter


class StreamExporter(BaseExporter):
    """Write values to ``stream`` and flush after every line.

    Without an explicit stream the ``sys.stdout`` in effect at construction
    is kept, so results never follow a later redirection into the progress
    display.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    @property
    def stream(self) -> TextIO:
        return self._stream

    def export(self, value: str) -> None:
        stream = self.stream
        stream.write(value + "\n")
        stream.flush()

    def flush(self) -> None:
        self.stream.flush()

    def close(self) -> None:
        # 标准输出由进程持有，这里只做刷新
        self.flush()


__all__ = ["StreamExporter"]
