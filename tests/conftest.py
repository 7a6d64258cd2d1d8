"""Pytest configuration providing a fake CDX index and shared fixtures."""

from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Iterable

import httpx
import pytest

from archive_harvest.config import HarvestConfig


class FakeCdx:
    """In-memory stand-in for the CDX search endpoint.

    ``pages`` maps a page index to either a list of lines, an int status code
    returned on every attempt, or an exception class raised on every attempt.
    ``flaky`` lists per-page outcomes consumed one attempt at a time before
    falling back to ``pages``.
    """

    def __init__(self, count_body: str | None = None) -> None:
        self.count_body = count_body
        self.pages: dict[int, Any] = {}
        self.flaky: dict[int, list[Any]] = {}
        self.requests: list[httpx.Request] = []
        self._lock = Lock()

    def add_page(self, index: int, lines: Iterable[str] | int | type[Exception]) -> "FakeCdx":
        self.pages[index] = list(lines) if isinstance(lines, (list, tuple)) else lines
        return self

    def attempts_for(self, page: int) -> int:
        return sum(1 for req in self.requests if req.url.params.get("page") == str(page))

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        params = request.url.params
        if params.get("showNumPages") == "true":
            body = self.count_body if self.count_body is not None else f"{len(self.pages)}\n"
            return httpx.Response(200, text=body)

        page = int(params["page"])
        with self._lock:
            queue = self.flaky.get(page)
            outcome = queue.pop(0) if queue else self.pages.get(page, [])
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("simulated failure", request=request)
        if isinstance(outcome, int):
            return httpx.Response(outcome, text="error")
        return httpx.Response(200, text="\n".join(outcome) + "\n")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_cdx() -> FakeCdx:
    return FakeCdx()


@pytest.fixture
def make_config() -> Callable[..., HarvestConfig]:
    def _builder(**overrides: Any) -> HarvestConfig:
        base: dict[str, Any] = {
            "url_pattern": "example.com",
            "workers": 3,
            "page_workers": 2,
            "queue_size": 4,
            "timeout": 5,
            "backoff_seconds": 0,
            "cdx_endpoint": "https://cdx.test/cdx/search/cdx",
        }
        base.update(overrides)
        return HarvestConfig(**base)

    return _builder
