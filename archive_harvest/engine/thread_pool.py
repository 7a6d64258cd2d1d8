"""Fixed-size worker pools running long-lived queue consumers."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List


class WorkerPool:
    """Run ``size`` copies of a worker loop and join them as one unit.

    Each worker is expected to loop until its input channel is closed and
    drained; the pool itself never decides when work is finished.
    """

    def __init__(self, name: str, size: int) -> None:
        self.name = name
        self.size = max(1, size)
        self._executor = ThreadPoolExecutor(max_workers=self.size, thread_name_prefix=f"harvest-{name}")
        self._futures: List[Future] = []

    def start(self, worker: Callable[[int], None]) -> "WorkerPool":
        if self._futures:
            raise RuntimeError(f"Worker pool '{self.name}' already started")
        self._futures = [self._executor.submit(worker, index) for index in range(self.size)]
        return self

    def join(self) -> None:
        """Wait for every worker; re-raise the first worker exception."""

        try:
            for future in self._futures:
                future.result()
        finally:
            self._executor.shutdown(wait=True)


__all__ = ["WorkerPool"]
