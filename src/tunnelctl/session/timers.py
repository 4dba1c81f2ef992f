"""Timer service — explicit scheduler for handshake, settle, and tick timers.

Every callback runs on a single daemon thread in deadline order, with ties
broken by scheduling order. Components never sleep or poll; they schedule
continuations here and hand the service to whoever owns them, so tests can
substitute a virtual clock.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancellable reference to a scheduled callback."""

    __slots__ = ("_callback", "_cancelled", "interval")

    def __init__(
        self, callback: Callable[[], None], interval: float | None = None
    ) -> None:
        self._callback = callback
        self._cancelled = False
        self.interval = interval

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def run(self) -> None:
        if not self._cancelled:
            self._callback()


class TimerService(Protocol):
    """Protocol for timer services used by the session core."""

    def time(self) -> float:
        """Wall-clock time in seconds since the epoch."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after ``delay`` seconds."""
        ...

    def call_every(
        self, interval: float, callback: Callable[[], None]
    ) -> TimerHandle:
        """Run callback every ``interval`` seconds until cancelled."""
        ...

    def call_soon(self, callback: Callable[[], None]) -> TimerHandle:
        """Run callback as soon as possible, after already-due timers."""
        ...

    def stop(self) -> None:
        """Cancel everything and release resources."""
        ...


class ThreadedTimerService:
    """TimerService backed by one daemon thread and a deadline heap.

    Periodic timers are fixed-rate: each deadline is the previous deadline
    plus the interval, so a slow callback does not accumulate drift.
    """

    def __init__(self, name: str = "tunnelctl-timers") -> None:
        self._name = name
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._thread: threading.Thread | None = None
        self._stopped = False

    def time(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)
        self._push(time.monotonic() + max(0.0, delay), handle)
        return handle

    def call_every(
        self, interval: float, callback: Callable[[], None]
    ) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        handle = TimerHandle(callback, interval=interval)
        self._push(time.monotonic() + interval, handle)
        return handle

    def call_soon(self, callback: Callable[[], None]) -> TimerHandle:
        return self.call_later(0.0, callback)

    def stop(self) -> None:
        with self._cond:
            self._stopped = True
            for _due, _seq, handle in self._heap:
                handle.cancel()
            self._heap.clear()
            self._cond.notify_all()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

    def _push(self, due: float, handle: TimerHandle) -> None:
        with self._cond:
            if self._stopped:
                handle.cancel()
                return
            heapq.heappush(self._heap, (due, next(self._seq), handle))
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run, name=self._name, daemon=True
                )
                self._thread.start()
            self._cond.notify()

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._stopped:
                    if not self._heap:
                        self._cond.wait()
                        continue
                    due, _seq, handle = self._heap[0]
                    remaining = due - time.monotonic()
                    if remaining <= 0:
                        break
                    self._cond.wait(timeout=remaining)
                if self._stopped:
                    return
                heapq.heappop(self._heap)
                if handle.cancelled:
                    continue
                if handle.interval is not None:
                    heapq.heappush(
                        self._heap, (due + handle.interval, next(self._seq), handle)
                    )

            try:
                handle.run()
            except Exception:
                logger.exception("Timer callback failed")
