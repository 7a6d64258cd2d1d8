"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable


class BaseExporter(ABC):
    """Uniform line sink contract enabling plug-and-play outputs."""

    @abstractmethod
    def export(self, value: str) -> None:
        """Write a single value as its own line."""

    def export_many(self, values: Iterable[str]) -> None:
        for value in values:
            self.export(value)

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseExporter"]
