"""Tunnel address pool — leases addresses to connecting sessions."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable

from tunnelctl.errors import AssignmentFailed

logger = logging.getLogger(__name__)

DEFAULT_ADDRESSES: tuple[str, ...] = (
    "104.23.11.45",
    "192.168.44.12",
    "45.33.22.11",
    "198.51.100.22",
    "203.0.113.5",
)


class AddressPool:
    """Thread-safe pool of exit addresses, leased one per connected session."""

    def __init__(
        self,
        addresses: Iterable[str] = DEFAULT_ADDRESSES,
        rng: random.Random | None = None,
    ) -> None:
        self._free: list[str] = list(dict.fromkeys(addresses))
        self._leased: set[str] = set()
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    def acquire(self) -> str:
        """Lease a random free address. Raises AssignmentFailed if none is free."""
        with self._lock:
            if not self._free:
                raise AssignmentFailed(
                    f"No tunnel address available ({len(self._leased)} leased)"
                )
            address = self._free.pop(self._rng.randrange(len(self._free)))
            self._leased.add(address)
            logger.debug("Leased address %s", address)
            return address

    def release(self, address: str) -> None:
        with self._lock:
            if address not in self._leased:
                logger.debug("Ignoring release of unleased address %s", address)
                return
            self._leased.discard(address)
            self._free.append(address)
            logger.debug("Released address %s", address)

    @property
    def available(self) -> int:
        with self._lock:
            return len(self._free)
