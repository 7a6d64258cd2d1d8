from __future__ import annotations

import io
import threading

import httpx
import pytest
from rich.console import Console

from archive_harvest.config import OutputMode
from archive_harvest.engine import FilterCompileError, PageCountError
from archive_harvest.engine.exporter import BaseExporter, FileExporter, StreamExporter
from archive_harvest.orchestrator import Orchestrator, ResultWriteError
from archive_harvest.ui import ProgressReporter


class RecordingProgress:
    def __init__(self) -> None:
        self.total: int | None = None
        self.updates: list[int] = []
        self.closed = False
        self._lock = threading.Lock()

    def start(self, total: int) -> None:
        self.total = total

    def update(self, completed: int) -> None:
        with self._lock:
            self.updates.append(completed)

    def close(self) -> None:
        self.closed = True


def _run(config, fake_cdx, progress=None, cancel=None):
    stream = io.StringIO()
    orchestrator = Orchestrator(
        config,
        progress=progress,
        exporters=[StreamExporter(stream)],
        transport=fake_cdx.transport,
    )
    summary = orchestrator.run(cancel)
    return stream.getvalue().splitlines(), summary


def test_default_mode_streams_unique_urls(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://example.com/a", "http://example.com/b"])
    fake_cdx.add_page(1, ["http://example.com/b", "http://example.com/c"])
    fake_cdx.add_page(2, ["http://example.com/a"])
    progress = RecordingProgress()

    lines, summary = _run(make_config(), fake_cdx, progress)

    assert sorted(lines) == ["http://example.com/a", "http://example.com/b", "http://example.com/c"]
    assert summary.pages_total == 3
    assert summary.pages_completed == 3
    assert summary.lines_fetched == 5
    assert summary.values_written == 3
    assert progress.total == 3
    assert sorted(progress.updates) == [1, 2, 3]
    assert progress.closed


def test_large_run_respects_backpressure_and_dedup(make_config, fake_cdx) -> None:
    for page in range(12):
        fake_cdx.add_page(page, [f"http://example.com/{i % 50}" for i in range(page * 20, page * 20 + 40)])

    lines, summary = _run(make_config(queue_size=2, page_workers=3, workers=4), fake_cdx)

    assert len(lines) == len(set(lines)) == 50
    assert summary.pages_completed == 12


def test_failed_page_does_not_block_other_pages(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://example.com/first"])
    fake_cdx.add_page(1, 503)
    fake_cdx.add_page(2, ["http://example.com/third"])
    progress = RecordingProgress()

    lines, summary = _run(make_config(), fake_cdx, progress)

    assert sorted(lines) == ["http://example.com/first", "http://example.com/third"]
    assert summary.pages_failed == 1
    assert summary.pages_completed == summary.pages_total == 3
    assert max(progress.updates) == 3
    assert fake_cdx.attempts_for(1) == 3


def test_zero_pages_is_a_clean_noop(make_config, fake_cdx, tmp_path) -> None:
    fake_cdx.count_body = ""
    target = tmp_path / "urls.txt"
    progress = RecordingProgress()
    exporter = FileExporter(target)
    orchestrator = Orchestrator(make_config(), progress=progress, exporters=[exporter], transport=fake_cdx.transport)

    summary = orchestrator.run()

    assert summary.pages_total == 0
    assert summary.values_written == 0
    assert progress.total is None
    assert exporter.closed
    assert target.read_text(encoding="utf-8") == ""
    assert len(fake_cdx.requests) == 1


def test_only_query_keys_dedup_keeps_first_occurrence_order(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://h/p?a=1&b=2&a=3"])
    lines, _ = _run(make_config(mode=OutputMode.ONLY_QUERY_KEYS, workers=1, page_workers=1), fake_cdx)
    assert lines == ["a", "b"]


def test_no_query_mode(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://h/p?x=1", "http://h/p?y=2", "http://[broken/p?x=1"])
    lines, _ = _run(make_config(mode=OutputMode.NO_QUERY), fake_cdx)
    assert lines == ["http://h/p"]


def test_subdomain_mode(make_config, fake_cdx) -> None:
    fake_cdx.add_page(
        0,
        [
            "http://a.example.com/x",
            "http://example.com/x",
            "http://notexample.com/x",
            "https://A.EXAMPLE.com:443/y",
            "http://b.a.example.com/",
        ],
    )
    lines, _ = _run(make_config(url_pattern="*.example.com", mode=OutputMode.SUBDOMAINS), fake_cdx)
    assert sorted(lines) == ["a.example.com", "b.a.example.com"]
    assert fake_cdx.requests[0].url.params["url"] == "*.example.com"


def test_subdomain_mode_without_base_domain_drains_quietly(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, [f"http://s{i}.example.com/" for i in range(20)])
    lines, summary = _run(make_config(url_pattern="*", mode=OutputMode.SUBDOMAINS, queue_size=1), fake_cdx)
    assert lines == []
    assert summary.pages_completed == 1


def test_extract_paths_mode(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://h/a/b/a/"])
    lines, _ = _run(make_config(mode=OutputMode.EXTRACT_PATHS), fake_cdx)
    assert lines == ["a", "b"]


def test_extension_filters_apply(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://h/a.json", "http://h/b.txt", "http://h/c.JSON?x=1"])
    lines, _ = _run(make_config(include_ext="json"), fake_cdx)
    assert sorted(lines) == ["http://h/a.json", "http://h/c.JSON?x=1"]


def test_default_excludes_apply_when_requested(make_config, fake_cdx) -> None:
    fake_cdx.add_page(0, ["http://h/app.js", "http://h/logo.png", "http://h/index.php"])
    lines, _ = _run(make_config(exclude_defaults=True), fake_cdx)
    assert lines == ["http://h/index.php"]


def test_page_count_failure_aborts_before_workers(make_config, tmp_path) -> None:
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    exporter = FileExporter(tmp_path / "urls.txt")
    orchestrator = Orchestrator(make_config(), exporters=[exporter], transport=httpx.MockTransport(_refuse))
    with pytest.raises(PageCountError):
        orchestrator.run()
    assert exporter.closed


def test_filter_compile_error_raised_before_network(make_config, fake_cdx, monkeypatch) -> None:
    def _broken(*_args, **_kwargs):
        raise FilterCompileError("bad tokens")

    monkeypatch.setattr("archive_harvest.orchestrator.compile_extension_filter", _broken)
    orchestrator = Orchestrator(make_config(), exporters=[StreamExporter(io.StringIO())], transport=fake_cdx.transport)
    with pytest.raises(FilterCompileError):
        orchestrator.run()
    assert fake_cdx.requests == []


def test_cancelled_run_stops_dispatching_pages(make_config, fake_cdx) -> None:
    for page in range(30):
        fake_cdx.add_page(page, [f"http://example.com/{page}"])
    cancel = threading.Event()

    class CancelAfterFirstPage(RecordingProgress):
        def update(self, completed: int) -> None:
            super().update(completed)
            cancel.set()

    lines, summary = _run(make_config(page_workers=1), fake_cdx, CancelAfterFirstPage(), cancel)

    assert summary.cancelled
    assert 1 <= summary.pages_completed < 30
    assert len(lines) == summary.pages_completed


def test_file_output_reported_in_summary(make_config, fake_cdx, tmp_path) -> None:
    fake_cdx.add_page(0, ["http://example.com/a"])
    target = tmp_path / "urls.txt"
    orchestrator = Orchestrator(
        make_config(output_file=target),
        exporters=[StreamExporter(io.StringIO()), FileExporter(target)],
        transport=fake_cdx.transport,
    )
    summary = orchestrator.run()
    assert summary.output_path == target
    assert target.read_text(encoding="utf-8") == "http://example.com/a\n"


def test_results_stay_on_stdout_while_progress_bar_is_live(make_config, fake_cdx, capsys) -> None:
    long_url = "https://example.com/" + "x" * 200
    fake_cdx.add_page(0, ["https://example.com/a", long_url])
    bar_output = io.StringIO()
    progress = ProgressReporter(enabled=True, console=Console(file=bar_output, force_terminal=True, width=80))

    summary = Orchestrator(make_config(), progress=progress, transport=fake_cdx.transport).run()

    out = capsys.readouterr().out
    assert summary.values_written == 2
    assert "https://example.com/a\n" in out
    assert long_url + "\n" in out
    assert "https://example.com/a" not in bar_output.getvalue()


class BrokenDiskExporter(BaseExporter):
    def __init__(self) -> None:
        self.exported: list[str] = []
        self.closed = False

    def export(self, value: str) -> None:
        if self.exported:
            raise OSError(28, "No space left on device")
        self.exported.append(value)

    def flush(self) -> None:
        return

    def close(self) -> None:
        self.closed = True


def test_writer_failure_cancels_drains_and_reraises(make_config, fake_cdx) -> None:
    for page in range(20):
        fake_cdx.add_page(page, [f"http://example.com/{page}/{i}" for i in range(10)])
    exporter = BrokenDiskExporter()
    cancel = threading.Event()
    orchestrator = Orchestrator(
        make_config(queue_size=1, page_workers=2, workers=2),
        exporters=[exporter],
        transport=fake_cdx.transport,
    )

    with pytest.raises(ResultWriteError) as excinfo:
        orchestrator.run(cancel)

    assert isinstance(excinfo.value.__cause__, OSError)
    assert cancel.is_set()
    assert exporter.closed
    assert len(exporter.exported) == 1
