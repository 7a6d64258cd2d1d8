"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from ..logging_conf import LOGGER_NAME


@dataclass
class ProgressState:
    total: int
    completed: int = 0


class RateColumn(ProgressColumn):
    """显示页面抓取速率，格式为 "X.X page/s"。"""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} page/s", style="progress.percentage")


class ProgressReporter:
    """Render the pages-completed counter on stderr.

    Updates only move the bar forward; a stale or out-of-order value from a
    slower fetcher thread is ignored.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None, label: str = "CDX pages") -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self._label = label
        self.state: ProgressState | None = None
        self._rerouted: list[tuple[logging.StreamHandler, object]] = []

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console(stderr=True)
        if not self._console.is_terminal:
            # 非交互环境回退为静默模式
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.description}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            MofNCompleteColumn(),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            console=self._console,
            transient=True,
            refresh_per_second=10,
            redirect_stdout=False,
            redirect_stderr=True,
        )
        try:
            self._progress.start()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(self._label, total=total)
        self._route_log_handlers()

    def update(self, completed: int) -> None:
        if self.state is None:
            raise RuntimeError("ProgressReporter.start must be called before update")
        with self._lock:
            if completed <= self.state.completed:
                return
            self.state.completed = completed
            if self._progress is not None and self._task_id is not None:
                self._progress.update(self._task_id, completed=completed)

    def _route_log_handlers(self) -> None:
        # 进度条存活期间，控制台日志经 Live 的 stderr 代理输出在进度条上方
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            if type(handler) is logging.StreamHandler:
                self._rerouted.append((handler, handler.stream))
                handler.setStream(sys.stderr)

    def _restore_log_handlers(self) -> None:
        while self._rerouted:
            handler, stream = self._rerouted.pop()
            handler.setStream(stream)

    def close(self) -> None:
        self._restore_log_handlers()
        if self._progress is not None:
            try:
                self._progress.stop()
            finally:
                self._progress = None
                self._task_id = None


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
