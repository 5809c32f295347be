"""Work queue feeding the driver one resource at a time.

Resources are keyed by name. A resource waiting for its retry is replaced by
a newer event for the same name, which becomes due immediately. A retry never
replaces anything: if a fresh event arrived while the failed one was being
processed, that event is what gets reconciled next.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from typing import Callable

from bundle_builder.models.resource import PolicyResource


class WorkQueue:
    """Thread-safe delay queue of ``PolicyResource`` keyed by resource name."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cond = threading.Condition()
        self._heap: list[tuple[float, int, str]] = []
        self._entries: dict[str, tuple[float, int, PolicyResource]] = {}
        self._seq = itertools.count()
        self._closed = False
        self._shut_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._entries)

    def add(self, resource: PolicyResource) -> None:
        """Queue *resource* for immediate processing."""
        self.add_after(resource, 0.0)

    def add_after(self, resource: PolicyResource, delay: float) -> None:
        """Queue *resource* to become ready *delay* seconds from now.

        If the same name is already queued, this payload replaces it and the
        earlier of the two due times is kept.
        """
        self._put(resource, delay, replace=True)

    def requeue(self, resource: PolicyResource, delay: float) -> None:
        """Schedule a retry of *resource* unless its name is already queued.

        Whatever is already pending for the name arrived after *resource* was
        taken off the queue, so it is kept as is.
        """
        self._put(resource, delay, replace=False)

    def _put(self, resource: PolicyResource, delay: float, replace: bool) -> None:
        with self._cond:
            if self._shut_down:
                return
            seq = next(self._seq)
            key = self._key(resource, seq)
            due = self._clock() + max(delay, 0.0)
            existing = self._entries.get(key)
            if existing is not None:
                if not replace:
                    return
                due = min(due, existing[0])
            self._entries[key] = (due, seq, resource)
            heapq.heappush(self._heap, (due, seq, key))
            self._cond.notify_all()

    def get(self, timeout: float | None = None) -> PolicyResource | None:
        """Block until a resource is due and return it.

        Returns ``None`` after ``shut_down()``, once the queue is closed and
        empty, or when *timeout* expires.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                if self._shut_down:
                    return None

                wait_for = None
                while self._heap:
                    due, seq, key = self._heap[0]
                    entry = self._entries.get(key)
                    if entry is None or entry[1] != seq:
                        heapq.heappop(self._heap)  # superseded
                        continue
                    now = self._clock()
                    if due <= now:
                        heapq.heappop(self._heap)
                        del self._entries[key]
                        return entry[2]
                    wait_for = due - now
                    break

                if not self._entries and self._closed:
                    return None

                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)

                self._cond.wait(wait_for)

    def close(self) -> None:
        """No more external input; ``get`` returns ``None`` once drained.

        Retries are still accepted after closing, so a resource that keeps
        failing keeps the queue from draining. Only ``shut_down()`` ends that.
        """
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def shut_down(self) -> None:
        """Stop immediately, dropping anything still queued."""
        with self._cond:
            self._shut_down = True
            self._entries.clear()
            self._heap.clear()
            self._cond.notify_all()

    @staticmethod
    def _key(resource: PolicyResource, seq: int) -> str:
        if resource.name:
            return f"{resource.namespace or ''}/{resource.name}"
        return f"<unnamed:{seq}>"
