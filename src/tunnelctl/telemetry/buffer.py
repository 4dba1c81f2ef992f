"""Bounded, thread-safe ring buffer of traffic samples."""

from __future__ import annotations

import threading
from collections import deque

from tunnelctl.session.models import TrafficSample


class SampleBuffer:
    """Fixed-capacity chronological buffer; the oldest sample is evicted on insert.

    Readers get tuple copies from snapshot(), never the live deque.
    """

    def __init__(
        self, capacity: int = 20, prefill_timestamp: int | None = None
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._samples: deque[TrafficSample] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        if prefill_timestamp is not None:
            # Flat zero line so charts start full-width
            first = prefill_timestamp - capacity + 1
            for i in range(capacity):
                self._samples.append(TrafficSample(max(0, first + i)))

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def newest_timestamp(self) -> int:
        """Timestamp of the newest sample, or 0 when empty."""
        with self._lock:
            return self._samples[-1].timestamp_seconds if self._samples else 0

    def append(self, sample: TrafficSample) -> None:
        """Insert a sample, evicting the oldest when full.

        Samples older than the newest one are rejected to keep the buffer
        chronological.
        """
        with self._lock:
            newest = self._samples[-1] if self._samples else None
            if newest and sample.timestamp_seconds < newest.timestamp_seconds:
                raise ValueError(
                    f"Out-of-order sample at t={sample.timestamp_seconds} "
                    f"(newest is t={newest.timestamp_seconds})"
                )
            self._samples.append(sample)

    def snapshot(self) -> tuple[TrafficSample, ...]:
        with self._lock:
            return tuple(self._samples)

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
