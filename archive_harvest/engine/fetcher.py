"""CDX index access: page-count discovery and paginated page retrieval."""

from __future__ import annotations

import re
import time
from threading import Event
from typing import Callable

import httpx
import structlog

from ..config import HarvestConfig
from .channel import AtomicCounter, Channel

MAX_ATTEMPTS = 3

_PAGE_COUNT = re.compile(r"^\d+$")


class PageCountError(RuntimeError):
    """The page-count endpoint could not be queried at all."""


class CdxClient:
    """Thin httpx wrapper speaking the CDX search API."""

    def __init__(
        self,
        config: HarvestConfig,
        transport: httpx.BaseTransport | None = None,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config
        self.endpoint = config.cdx_endpoint
        self.pattern = config.cdx_pattern()
        self.logger = logger or structlog.get_logger("archive_harvest.fetcher")
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=config.timeout,
            follow_redirects=True,
            transport=transport,
            limits=httpx.Limits(max_connections=config.page_workers + 1),
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "CdxClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    def page_count_params(self) -> dict[str, str]:
        return {"url": self.pattern, "showNumPages": "true"}

    def page_params(self, page: int) -> dict[str, str]:
        return {
            "url": self.pattern,
            "page": str(page),
            "fl": "original",
            "collapse": "urlkey",
        }

    def page_count(self) -> int:
        """Ask the index how many pages exist for the configured pattern."""

        try:
            response = self._client.get(self.endpoint, params=self.page_count_params())
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise PageCountError(f"fetch page count: {exc}") from exc

        first_line = ""
        for line in response.text.splitlines():
            if line.strip():
                first_line = line.strip()
                break
        if not first_line:
            return 0
        if not _PAGE_COUNT.match(first_line):
            self.logger.warning(
                "page_count_unparsable",
                value=first_line[:80],
                status=response.status_code,
                fallback=1,
            )
            return 1
        return int(first_line)

    def open_page(self, page: int, cancel: Event | None = None) -> tuple[httpx.Response | None, int]:
        """Open a streamed page response, retrying up to ``MAX_ATTEMPTS`` times.

        Returns the open response (caller must close it) or ``None`` when all
        attempts failed or the run was cancelled, together with the number
        of attempts made.
        """

        request = self._client.build_request("GET", self.endpoint, params=self.page_params(page))
        attempts = 0
        for attempt in range(1, MAX_ATTEMPTS + 1):
            if cancel is not None and cancel.is_set():
                break
            attempts = attempt
            error: str
            try:
                response = self._client.send(request, stream=True)
            except httpx.HTTPError as exc:
                error = str(exc) or exc.__class__.__name__
            else:
                if response.is_success:
                    return response, attempts
                response.close()
                error = f"unexpected status {response.status_code}"

            self.logger.warning("page_retry", page=page, attempt=attempt, error=error)
            if attempt < MAX_ATTEMPTS and self._backoff(attempt, cancel):
                break
        return None, attempts

    def _backoff(self, attempt: int, cancel: Event | None) -> bool:
        """Sleep ``attempt`` backoff units; ``True`` if cancelled meanwhile."""

        delay = attempt * self.config.backoff_seconds
        if self._sleep is None and cancel is not None:
            return cancel.wait(delay)
        (self._sleep or time.sleep)(delay)
        return cancel is not None and cancel.is_set()


class PageFetcher:
    """Worker loop moving CDX pages into the raw-line channel."""

    def __init__(
        self,
        client: CdxClient,
        pages: Channel[int],
        lines: Channel[str],
        completed: AtomicCounter,
        cancel: Event,
        on_progress: Callable[[int], None] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client
        self.pages = pages
        self.lines = lines
        self.completed = completed
        self.cancel = cancel
        self.on_progress = on_progress
        self.logger = logger or structlog.get_logger("archive_harvest.fetcher")
        self.failed = AtomicCounter()
        self.lines_read = AtomicCounter()

    def run(self, worker_index: int = 0) -> None:
        for page in self.pages:
            if self.cancel.is_set():
                return
            self.fetch(page)

    def fetch(self, page: int) -> None:
        response, attempts = self.client.open_page(page, self.cancel)
        if response is None:
            if self.cancel.is_set():
                return
            self.logger.error("page_failed", page=page, attempts=attempts)
            self.failed.increment()
            self._advance()
            return

        pushed = 0
        try:
            for raw in response.iter_lines():
                line = raw.strip()
                if line:
                    self.lines.put(line)
                    pushed += 1
        except httpx.HTTPError as exc:
            self.logger.warning("page_read_error", page=page, lines=pushed, error=str(exc))
        finally:
            response.close()
        self.lines_read.increment(pushed)
        self._advance()

    def _advance(self) -> None:
        done = self.completed.increment()
        if self.on_progress is not None:
            self.on_progress(done)


__all__ = ["CdxClient", "MAX_ATTEMPTS", "PageCountError", "PageFetcher"]
