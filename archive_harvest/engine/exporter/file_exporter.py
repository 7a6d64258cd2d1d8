"""File based exporter mirroring results to a plain text file."""

from __future__ import annotations

from pathlib import Path

from .base import BaseExporter


class FileExporter(BaseExporter):
    """Write one value per line to ``path``, truncating any previous content."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8", newline="\n")
        self._counter = 0

    @property
    def closed(self) -> bool:
        return self._file.closed

    @property
    def count(self) -> int:
        return self._counter

    def export(self, value: str) -> None:
        self._file.write(value)
        self._file.write("\n")
        self._file.flush()
        self._counter += 1

    def flush(self) -> None:
        if not self._file.closed:
            self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


__all__ = ["FileExporter"]
