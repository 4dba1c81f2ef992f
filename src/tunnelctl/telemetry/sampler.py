"""Telemetry sampler — one TrafficSample per interval while started."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from tunnelctl.session.models import TrafficSample
from tunnelctl.session.timers import TimerHandle, TimerService
from tunnelctl.telemetry.generators import ThroughputGenerator, ZeroThroughput

logger = logging.getLogger(__name__)


class TelemetrySampler:
    """Produces TrafficSamples at a fixed cadence from a ThroughputGenerator.

    start() while already active restarts cleanly, so at most one sampling
    timer exists per sampler. Once stop() returns, no further sample is
    delivered, even from a tick that was already queued.

    Owners that mutate shared state from ``on_sample`` should pass their own
    lock so sampler bookkeeping and the callback share one critical section.
    ``initial_timestamp`` is the floor for the first sample, typically the
    newest timestamp already held by the consumer.
    """

    def __init__(
        self,
        timers: TimerService,
        generator: ThroughputGenerator | None = None,
        interval: float = 1.0,
        lock: threading.RLock | None = None,
        initial_timestamp: int = 0,
    ) -> None:
        self._timers = timers
        self._generator: ThroughputGenerator = generator or ZeroThroughput()
        self._interval = interval
        self._lock = lock or threading.RLock()
        self._handle: TimerHandle | None = None
        self._on_sample: Callable[[TrafficSample], None] | None = None
        self._run_id = 0
        self._last_timestamp = initial_timestamp

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._handle is not None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def generator(self) -> ThroughputGenerator:
        return self._generator

    def start(
        self,
        on_sample: Callable[[TrafficSample], None],
        generator: ThroughputGenerator | None = None,
    ) -> None:
        """Begin sampling, replacing any running timer and generator."""
        with self._lock:
            self._cancel()
            if generator is not None:
                self._generator = generator
            self._generator.reset()
            self._on_sample = on_sample
            self._run_id += 1
            run_id = self._run_id
            self._handle = self._timers.call_every(
                self._interval, lambda: self._tick(run_id)
            )
            logger.debug(
                "Sampler started (%s, every %.1fs)",
                type(self._generator).__name__,
                self._interval,
            )

    def stop(self) -> None:
        with self._lock:
            if self._handle is not None:
                logger.debug("Sampler stopped")
            self._cancel()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._on_sample = None

    def _tick(self, run_id: int) -> None:
        with self._lock:
            # A tick from a superseded timer must not leak through
            if run_id != self._run_id or self._on_sample is None:
                return
            throughput = self._generator.read()
            # Wall clock may step backwards; samples must stay chronological
            timestamp = max(int(self._timers.time()), self._last_timestamp)
            self._last_timestamp = timestamp
            self._on_sample(
                TrafficSample(
                    timestamp_seconds=timestamp,
                    download_mbps=throughput.download_mbps,
                    upload_mbps=throughput.upload_mbps,
                )
            )
