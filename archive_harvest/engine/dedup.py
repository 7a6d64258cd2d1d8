"""Run-scoped deduplication and the single consumer writing results out."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

import structlog

from ..config import OutputMode
from .channel import Channel
from .exporter import BaseExporter, FileExporter
from .processor import parse_url


@dataclass
class DeduplicationStore:
    """In-memory set of already emitted keys for the current run.

    Owned by exactly one consumer thread, so no locking is done here.
    """

    seen: set[str] = field(default_factory=set)

    def check_and_store(self, key: str) -> bool:
        """Return ``True`` when ``key`` is new (and remember it)."""

        if key in self.seen:
            return False
        self.seen.add(key)
        return True

    def __len__(self) -> int:
        return len(self.seen)


class ValueDeduplicator:
    """Exact, case-sensitive dedup of whole values."""

    def __init__(self) -> None:
        self.store = DeduplicationStore()

    def accept(self, value: str) -> List[str]:
        return [value] if self.store.check_and_store(value) else []


class SubdomainDeduplicator:
    """Reduce URLs to unique, lower-cased strict subdomains of ``base_domain``."""

    def __init__(self, base_domain: str) -> None:
        self.base_domain = base_domain.lower()
        self._suffix = "." + self.base_domain
        self.store = DeduplicationStore()

    def host_of(self, value: str) -> str:
        parts = parse_url(value)
        if parts is None:
            return ""
        host = parts.netloc.rpartition("@")[2]
        if host.startswith("["):
            host = host.partition("]")[0] + "]"
        else:
            host = host.partition(":")[0]
        return host.strip().lower()

    def accept(self, value: str) -> List[str]:
        host = self.host_of(value)
        if not host or host == self.base_domain:
            return []
        if not host.endswith(self._suffix):
            return []
        return [host] if self.store.check_and_store(host) else []


class PathSegmentDeduplicator:
    """Emit each distinct path segment once across the whole run."""

    def __init__(self) -> None:
        self.store = DeduplicationStore()

    def accept(self, value: str) -> List[str]:
        parts = parse_url(value)
        if parts is None or not parts.path:
            return []
        fresh: List[str] = []
        for segment in parts.path.split("/"):
            segment = segment.strip()
            if segment and self.store.check_and_store(segment):
                fresh.append(segment)
        return fresh


def build_deduplicator(mode: OutputMode, base_domain: str = ""):
    """Pick the dedup strategy for ``mode``; ``None`` means write nothing."""

    if mode is OutputMode.SUBDOMAINS:
        if not base_domain:
            return None
        return SubdomainDeduplicator(base_domain)
    if mode is OutputMode.EXTRACT_PATHS:
        return PathSegmentDeduplicator()
    return ValueDeduplicator()


class ResultWriter:
    """Single consumer draining the results channel into every exporter."""

    def __init__(
        self,
        results: Channel[str],
        exporters: Sequence[BaseExporter],
        mode: OutputMode,
        base_domain: str = "",
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.results = results
        self.exporters = list(exporters)
        self.deduplicator = build_deduplicator(mode, base_domain)
        self.logger = logger or structlog.get_logger("archive_harvest.dedup")
        self.written = 0
        self.saved_to: Path | None = None

    def run(self, worker_index: int = 0) -> int:
        try:
            if self.deduplicator is None:
                self.logger.warning("no_base_domain", detail="subdomain mode has nothing to match")
                for _ in self.results:
                    pass
            else:
                for value in self.results:
                    self._write(self.deduplicator.accept(value))
        finally:
            self._finish()
        return self.written

    def _write(self, values: Iterable[str]) -> None:
        for value in values:
            for exporter in self.exporters:
                exporter.export(value)
            self.written += 1

    def _finish(self) -> None:
        for exporter in self.exporters:
            exporter.flush()
            exporter.close()
            if isinstance(exporter, FileExporter):
                self.saved_to = exporter.path
                self.logger.info("results_saved", path=str(exporter.path), lines=exporter.count)


__all__ = [
    "DeduplicationStore",
    "PathSegmentDeduplicator",
    "ResultWriter",
    "SubdomainDeduplicator",
    "ValueDeduplicator",
    "build_deduplicator",
]
