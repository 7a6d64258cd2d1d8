"""Engine components orchestrating fetch → filter → dedup → export."""

from .channel import AtomicCounter, Channel, ChannelClosed
from .dedup import DeduplicationStore, ResultWriter, build_deduplicator
from .fetcher import MAX_ATTEMPTS, CdxClient, PageCountError, PageFetcher
from .filters import ExtensionFilter, FilterCompileError, compile_extension_filter
from .processor import LineProcessor
from .thread_pool import WorkerPool

__all__ = [
    "AtomicCounter",
    "CdxClient",
    "Channel",
    "ChannelClosed",
    "DeduplicationStore",
    "ExtensionFilter",
    "FilterCompileError",
    "LineProcessor",
    "MAX_ATTEMPTS",
    "PageCountError",
    "PageFetcher",
    "ResultWriter",
    "WorkerPool",
    "build_deduplicator",
    "compile_extension_filter",
]
