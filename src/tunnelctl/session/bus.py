"""Observer bus — synchronous, ordered delivery of session snapshots."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from tunnelctl.session.models import SessionSnapshot

logger = logging.getLogger(__name__)

Observer = Callable[[SessionSnapshot], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe(); pass it to unsubscribe()."""

    id: int


class ObserverBus:
    """Delivers snapshots to subscribers in publish order.

    Each delivery iterates over the observer list captured when it began,
    so unsubscribing mid-notification never affects that notification.
    A publish made from inside an observer is queued and delivered once
    the current one has reached every observer.
    """

    def __init__(self) -> None:
        self._observers: dict[int, Observer] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._pending: deque[SessionSnapshot] = deque()
        self._delivering = False

    def subscribe(self, observer: Observer) -> Subscription:
        with self._lock:
            handle = Subscription(next(self._ids))
            self._observers[handle.id] = observer
            return handle

    def unsubscribe(self, handle: Subscription) -> None:
        """Remove an observer. Unknown or already-removed handles are ignored."""
        with self._lock:
            self._observers.pop(handle.id, None)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def publish(self, snapshot: SessionSnapshot) -> None:
        with self._lock:
            self._pending.append(snapshot)
            if self._delivering:
                return
            self._delivering = True
            try:
                while self._pending:
                    current = self._pending.popleft()
                    for observer in tuple(self._observers.values()):
                        self._notify(observer, current)
            finally:
                self._delivering = False
                self._pending.clear()

    @staticmethod
    def _notify(observer: Observer, snapshot: SessionSnapshot) -> None:
        try:
            observer(snapshot)
        except Exception:
            logger.exception(
                "Observer %r failed on %s snapshot", observer, snapshot.state.value
            )
