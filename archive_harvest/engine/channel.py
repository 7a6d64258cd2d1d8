"""Bounded, closable queues and the shared page counter."""

from __future__ import annotations

from collections import deque
from threading import Condition, Event, Lock
from typing import Deque, Generic, Iterator, TypeVar

T = TypeVar("T")

# Granularity of the abort check while a producer waits on a full queue.
_ABORT_POLL_SECONDS = 0.1


class ChannelClosed(RuntimeError):
    """Raised when a producer pushes onto a queue that was already closed."""


class Channel(Generic[T]):
    """Bounded FIFO shared between stages.

    Producers block while the queue is full, consumers block while it is
    empty and still open. Closing is the only completion signal: once closed
    and drained, ``get`` returns ``None`` and iteration stops.
    """

    def __init__(self, capacity: int, name: str = "channel") -> None:
        if capacity < 1:
            raise ValueError("Channel capacity must be >= 1")
        self.capacity = capacity
        self.name = name
        self._items: Deque[T] = deque()
        self._closed = False
        self._cond = Condition(Lock())

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, item: T, abort: Event | None = None) -> bool:
        """Push ``item``; returns ``False`` only if ``abort`` fired while waiting."""

        with self._cond:
            while len(self._items) >= self.capacity and not self._closed:
                if abort is not None:
                    if abort.is_set():
                        return False
                    self._cond.wait(_ABORT_POLL_SECONDS)
                else:
                    self._cond.wait()
            if self._closed:
                raise ChannelClosed(f"put on closed channel '{self.name}'")
            self._items.append(item)
            self._cond.notify_all()
            return True

    def get(self) -> T | None:
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if not self._items:
                return None
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item


class AtomicCounter:
    """Integer counter with locked increments and lock-free reads."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        return self._value


__all__ = ["AtomicCounter", "Channel", "ChannelClosed"]
