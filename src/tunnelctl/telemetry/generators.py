"""Throughput generators — where TrafficSample values come from."""

from __future__ import annotations

import logging
import random
import time
from typing import NamedTuple, Protocol, runtime_checkable

import psutil

logger = logging.getLogger(__name__)

_BITS_PER_MEGABIT = 1_000_000


class Throughput(NamedTuple):
    download_mbps: float
    upload_mbps: float


@runtime_checkable
class ThroughputGenerator(Protocol):
    """Protocol for throughput sources polled once per sampling interval."""

    def reset(self) -> None:
        """Forget any state from a previous run."""
        ...

    def read(self) -> Throughput:
        """Return throughput since the previous read."""
        ...


class ZeroThroughput:
    """Idle line: always reports zero."""

    def reset(self) -> None:
        pass

    def read(self) -> Throughput:
        return Throughput(0.0, 0.0)


class SimulatedThroughput:
    """Random-in-range throughput for demo and test sessions."""

    def __init__(
        self,
        download_range: tuple[int, int] = (100, 150),
        upload_range: tuple[int, int] = (20, 50),
        rng: random.Random | None = None,
    ) -> None:
        self._download_range = download_range
        self._upload_range = upload_range
        self._rng = rng or random.Random()

    def reset(self) -> None:
        pass

    def read(self) -> Throughput:
        return Throughput(
            float(self._rng.randint(*self._download_range)),
            float(self._rng.randint(*self._upload_range)),
        )


class InterfaceThroughput:
    """Real throughput from psutil network interface counters.

    reset() takes the counter baseline, so the first read after it reports
    real traffic. Without a baseline a read only establishes one and
    reports zero.
    Counter wraparound or a vanished NIC also reports zero for that interval.
    """

    def __init__(self, interface: str = "") -> None:
        self._interface = interface
        self._last: tuple[int, int, float] | None = None

    def reset(self) -> None:
        counters = self._counters()
        if counters is None:
            self._last = None
        else:
            self._last = (*counters, time.monotonic())

    def read(self) -> Throughput:
        counters = self._counters()
        now = time.monotonic()
        if counters is None:
            self._last = None
            return Throughput(0.0, 0.0)

        recv, sent = counters
        last = self._last
        self._last = (recv, sent, now)
        if last is None:
            return Throughput(0.0, 0.0)

        last_recv, last_sent, last_time = last
        elapsed = now - last_time
        if elapsed <= 0 or recv < last_recv or sent < last_sent:
            return Throughput(0.0, 0.0)

        return Throughput(
            round((recv - last_recv) * 8 / elapsed / _BITS_PER_MEGABIT, 2),
            round((sent - last_sent) * 8 / elapsed / _BITS_PER_MEGABIT, 2),
        )

    def _counters(self) -> tuple[int, int] | None:
        if self._interface:
            per_nic = psutil.net_io_counters(pernic=True)
            stats = per_nic.get(self._interface)
            if stats is None:
                logger.warning("Network interface %s not found", self._interface)
                return None
        else:
            stats = psutil.net_io_counters()
            if stats is None:
                return None
        return stats.bytes_recv, stats.bytes_sent
