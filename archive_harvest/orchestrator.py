"""Pipeline orchestrator wiring page discovery, fetching, filtering and output."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from threading import Event, Thread
from typing import Protocol, Sequence

import httpx

from .config import HarvestConfig
from .engine import (
    AtomicCounter,
    CdxClient,
    Channel,
    ExtensionFilter,
    LineProcessor,
    PageFetcher,
    ResultWriter,
    WorkerPool,
    compile_extension_filter,
)
from .engine.exporter import BaseExporter, FileExporter, StreamExporter
from .logging_conf import component_logger


class ResultWriteError(RuntimeError):
    """Writing results failed after the pipeline had started."""


class ProgressSink(Protocol):
    def start(self, total: int) -> None: ...

    def update(self, completed: int) -> None: ...

    def close(self) -> None: ...


class _NullProgress:
    def start(self, total: int) -> None:
        return

    def update(self, completed: int) -> None:
        return

    def close(self) -> None:
        return


@dataclass(slots=True)
class HarvestSummary:
    """What a finished run did."""

    pages_total: int = 0
    pages_completed: int = 0
    pages_failed: int = 0
    lines_fetched: int = 0
    values_written: int = 0
    output_path: Path | None = None
    cancelled: bool = False


class Orchestrator:
    """Central coordinator owning channel lifetimes and shutdown ordering."""

    def __init__(
        self,
        config: HarvestConfig,
        progress: ProgressSink | None = None,
        exporters: Sequence[BaseExporter] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.progress = progress or _NullProgress()
        self._exporters = list(exporters) if exporters is not None else None
        self._transport = transport
        self.logger = component_logger("orchestrator")

    def _open_exporters(self) -> list[BaseExporter]:
        if self._exporters is not None:
            return self._exporters
        exporters: list[BaseExporter] = [StreamExporter()]
        if self.config.output_file is not None:
            exporters.append(FileExporter(self.config.output_file))
        return exporters

    # ------------------------------------------------------------------
    def run(self, cancel: Event | None = None) -> HarvestSummary:
        """Execute the full fetch → process → dedup → write pipeline.

        Raises ``FilterCompileError``, ``PageCountError`` or ``OSError`` before
        any page is fetched. After that, page- and line-scoped problems are
        only logged; a failing exporter stops the run with ``ResultWriteError``.
        """

        cancel = cancel or Event()
        config = self.config
        ext_filter = compile_extension_filter(config.include_ext, config.effective_exclude())
        exporters = self._open_exporters()
        summary = HarvestSummary(output_path=config.output_file)

        with CdxClient(config, transport=self._transport, logger=component_logger("fetcher")) as client:
            try:
                pages = client.page_count()
            except Exception:
                self._close_exporters(exporters)
                raise
            summary.pages_total = pages
            if pages == 0:
                self.logger.warning("no_pages", pattern=client.pattern, detail="nothing to do")
                self._close_exporters(exporters)
                return summary

            self.logger.info("harvest_started", pattern=client.pattern, pages=pages, mode=config.mode.value)
            self.progress.start(pages)
            try:
                self._run_pipeline(client, pages, ext_filter, exporters, cancel, summary)
            finally:
                self.progress.close()

        summary.cancelled = cancel.is_set()
        self.logger.info(
            "harvest_finished",
            pages=summary.pages_total,
            failed=summary.pages_failed,
            lines=summary.lines_fetched,
            written=summary.values_written,
            cancelled=summary.cancelled,
        )
        return summary

    def _run_pipeline(
        self,
        client: CdxClient,
        pages: int,
        ext_filter: ExtensionFilter,
        exporters: Sequence[BaseExporter],
        cancel: Event,
        summary: HarvestSummary,
    ) -> None:
        config = self.config
        page_jobs: Channel[int] = Channel(config.page_workers, name="pages")
        raw_lines: Channel[str] = Channel(config.queue_size, name="lines")
        results: Channel[str] = Channel(config.queue_size, name="results")
        completed = AtomicCounter()

        fetcher = PageFetcher(
            client,
            page_jobs,
            raw_lines,
            completed,
            cancel,
            on_progress=self.progress.update,
            logger=component_logger("fetcher"),
        )
        processor = LineProcessor(config.mode, ext_filter)
        writer = ResultWriter(
            results,
            exporters,
            config.mode,
            base_domain=config.base_domain(),
            logger=component_logger("dedup"),
        )

        def _process(_worker_index: int) -> None:
            for line in raw_lines:
                for value in processor.process(line):
                    results.put(value)

        writer_errors: list[BaseException] = []

        def _write() -> None:
            try:
                writer.run()
            except Exception as exc:  # noqa: BLE001 - re-raised after join
                writer_errors.append(exc)
                self.logger.error("writer_failed", error=str(exc))
                cancel.set()
                # upstream workers must never block on a queue nobody reads
                for _ in results:
                    pass

        fetch_pool = WorkerPool("fetch", config.page_workers).start(fetcher.run)
        process_pool = WorkerPool("process", config.workers).start(_process)
        writer_thread = Thread(target=_write, name="harvest-writer", daemon=True)
        writer_thread.start()

        # 严格的关闭顺序：pages → lines → results，保证不会向已关闭队列写入
        try:
            try:
                try:
                    for page in range(pages):
                        if cancel.is_set() or not page_jobs.put(page, abort=cancel):
                            break
                finally:
                    page_jobs.close()
                    fetch_pool.join()
            finally:
                raw_lines.close()
                process_pool.join()
        finally:
            results.close()
            writer_thread.join()

        if writer_errors:
            raise ResultWriteError(f"write results: {writer_errors[0]}") from writer_errors[0]

        summary.pages_completed = completed.value
        summary.pages_failed = fetcher.failed.value
        summary.lines_fetched = fetcher.lines_read.value
        summary.values_written = writer.written
        if writer.saved_to is not None:
            summary.output_path = writer.saved_to

    @staticmethod
    def _close_exporters(exporters: Sequence[BaseExporter]) -> None:
        for exporter in exporters:
            exporter.close()


__all__ = ["HarvestSummary", "Orchestrator", "ProgressSink", "ResultWriteError"]
