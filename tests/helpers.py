"""Test doubles shared across the unit tests."""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future
from typing import Any

from tunnelctl.session.models import SessionSnapshot
from tunnelctl.session.timers import TimerHandle


class ManualTimers:
    """TimerService driven by a virtual clock; nothing runs until advance()."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self.stopped = False

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)
        self._push(self.now + delay, handle)
        return handle

    def call_every(
        self, interval: float, callback: Callable[[], None]
    ) -> TimerHandle:
        handle = TimerHandle(callback, interval=interval)
        self._push(self.now + interval, handle)
        return handle

    def call_soon(self, callback: Callable[[], None]) -> TimerHandle:
        return self.call_later(0.0, callback)

    def stop(self) -> None:
        self.stopped = True
        for _due, _seq, handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._heap and self._heap[0][0] <= target:
            due, _seq, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            self.now = max(self.now, due)
            if handle.interval is not None:
                self._push(due + handle.interval, handle)
            handle.run()
        self.now = target

    def run_pending(self) -> None:
        self.advance(0.0)

    @property
    def pending(self) -> int:
        return sum(1 for _d, _s, h in self._heap if not h.cancelled)

    def _push(self, due: float, handle: TimerHandle) -> None:
        if self.stopped:
            handle.cancel()
            return
        heapq.heappush(self._heap, (due, next(self._seq), handle))


class DeferredExecutor(Executor):
    """Executor that only runs submitted work when told to."""

    def __init__(self) -> None:
        self.queued: list[tuple[Future, Callable[..., Any], tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        self.queued.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> None:
        future, fn, args, kwargs = self.queued.pop(0)
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)

    def run_all(self) -> None:
        while self.queued:
            self.run_next()


class ImmediateExecutor(DeferredExecutor):
    """Executor that runs work synchronously inside submit()."""

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future = super().submit(fn, *args, **kwargs)
        self.run_next()
        return future


class StubBackend:
    """AssessmentBackend returning canned payloads (or raising) in order."""

    def __init__(
        self,
        payloads: list[Mapping[str, Any]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._payloads = list(payloads or [])
        self._error = error
        self.calls: list[tuple[str, str]] = []

    def fetch(self, city: str, region: str) -> Mapping[str, Any]:
        self.calls.append((city, region))
        if self._error is not None:
            raise self._error
        if len(self._payloads) > 1:
            return self._payloads.pop(0)
        return self._payloads[0]


class Recorder:
    """Observer that keeps every snapshot it receives."""

    def __init__(self) -> None:
        self.snapshots: list[SessionSnapshot] = []

    def __call__(self, snapshot: SessionSnapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def states(self) -> list:
        return [s.state for s in self.snapshots]

    @property
    def last(self) -> SessionSnapshot:
        return self.snapshots[-1]


SECURE_PAYLOAD = {
    "status": "secure",
    "summary": "Strong privacy statutes and modern peering.",
    "encryptionScheme": "ChaCha20-Poly1305",
    "maskingActive": True,
}
