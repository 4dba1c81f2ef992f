"""Session controller — owns the tunnel state machine and its reporting.

Threading model:
- Caller thread: toggle_connection() / select_endpoint() / snapshot()
- Timer thread: handshake, settle, elapsed ticks, telemetry samples,
  and assessment completions (posted back via call_soon)

Every mutation of the Session happens while holding ``self._lock``, and
every mutation is followed by a publish on the ObserverBus.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from types import TracebackType

from tunnelctl.assessment.assessor import SecurityAssessor, fallback_assessment
from tunnelctl.assessment.backend import HttpAssessmentBackend
from tunnelctl.catalog.models import Endpoint
from tunnelctl.config import TunnelCtlConfig
from tunnelctl.errors import AssignmentFailed
from tunnelctl.session.addresses import AddressPool
from tunnelctl.session.bus import Observer, ObserverBus, Subscription
from tunnelctl.session.models import (
    ANALYZING_ASSESSMENT,
    SecurityAssessment,
    Session,
    SessionFault,
    SessionSnapshot,
    SessionState,
    TrafficSample,
)
from tunnelctl.session.timers import ThreadedTimerService, TimerHandle, TimerService
from tunnelctl.telemetry.buffer import SampleBuffer
from tunnelctl.telemetry.generators import (
    InterfaceThroughput,
    SimulatedThroughput,
    ThroughputGenerator,
    ZeroThroughput,
)
from tunnelctl.telemetry.sampler import TelemetrySampler

logger = logging.getLogger(__name__)

# Elapsed time has one-second resolution regardless of the sampling interval
_TICK_INTERVAL = 1.0

_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.DISCONNECTED: frozenset({SessionState.CONNECTING}),
    SessionState.CONNECTING: frozenset(
        {SessionState.CONNECTED, SessionState.DISCONNECTED}
    ),
    SessionState.CONNECTED: frozenset({SessionState.DISCONNECTING}),
    SessionState.DISCONNECTING: frozenset({SessionState.DISCONNECTED}),
}

# States in which an arriving assessment may still be applied
_ASSESSABLE = frozenset({SessionState.CONNECTING, SessionState.CONNECTED})


class SessionController:
    """Drives one tunnel session: handshake, telemetry, assessment, teardown."""

    def __init__(
        self,
        assessor: SecurityAssessor,
        timers: TimerService | None = None,
        addresses: AddressPool | None = None,
        generator: ThroughputGenerator | None = None,
        handshake_delay: float = 2.5,
        settle_delay: float = 1.5,
        sample_interval: float = 1.0,
        sample_capacity: int = 20,
    ) -> None:
        self._lock = threading.RLock()
        self._timers: TimerService = timers or ThreadedTimerService()
        self._owns_timers = timers is None
        self._owns_assessor = False
        self._assessor = assessor
        self._addresses = addresses or AddressPool()
        self._live_generator = generator or SimulatedThroughput()
        self._idle_generator = ZeroThroughput()
        self._handshake_delay = handshake_delay
        self._settle_delay = settle_delay
        self._bus = ObserverBus()
        self._session = Session()
        self._buffer = SampleBuffer(
            sample_capacity, prefill_timestamp=int(self._timers.time())
        )
        self._sampler = TelemetrySampler(
            self._timers,
            interval=sample_interval,
            lock=self._lock,
            initial_timestamp=self._buffer.newest_timestamp,
        )
        self._pending: TimerHandle | None = None
        self._ticker: TimerHandle | None = None
        self._closed = False

        # Zero-valued samples keep flowing while idle so charts have no gaps
        self._sampler.start(self._on_sample, self._idle_generator)

    @classmethod
    def from_config(
        cls,
        config: TunnelCtlConfig,
        timers: TimerService | None = None,
    ) -> SessionController:
        """Build a controller (and its assessor/backend) from configuration."""
        backend = None
        if config.assessment_url:
            backend = HttpAssessmentBackend(
                config.assessment_url,
                api_key=config.assessment_api_key,
                timeout=config.assessment_timeout,
            )

        generator: ThroughputGenerator
        if config.telemetry == "interface":
            generator = InterfaceThroughput(config.interface)
        else:
            generator = SimulatedThroughput()

        controller = cls(
            assessor=SecurityAssessor(backend),
            timers=timers,
            generator=generator,
            handshake_delay=config.handshake_delay,
            settle_delay=config.settle_delay,
            sample_interval=config.sample_interval,
            sample_capacity=config.sample_capacity,
        )
        controller._owns_assessor = True
        return controller

    # -- Public API -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._session.state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._session.generation

    @property
    def selected_endpoint(self) -> Endpoint | None:
        with self._lock:
            return self._session.endpoint

    def snapshot(self) -> SessionSnapshot:
        """Return an immutable view of the current session."""
        with self._lock:
            return self._build_snapshot()

    def subscribe(self, observer: Observer) -> Subscription:
        return self._bus.subscribe(observer)

    def unsubscribe(self, handle: Subscription) -> None:
        self._bus.unsubscribe(handle)

    def select_endpoint(self, endpoint: Endpoint) -> bool:
        """Choose the endpoint for the next connection.

        Rejected (returns False, nothing changes) unless DISCONNECTED.
        """
        with self._lock:
            if self._session.state != SessionState.DISCONNECTED:
                logger.debug(
                    "Ignoring endpoint selection '%s' while %s",
                    endpoint.id,
                    self._session.state.value,
                )
                return False
            if self._session.endpoint != endpoint:
                self._session.endpoint = endpoint
                self._publish()
            return True

    def toggle_connection(self, endpoint: Endpoint | None = None) -> None:
        """Connect when DISCONNECTED, disconnect when CONNECTED.

        When DISCONNECTED, ``endpoint`` (or the previously selected one) is
        required. Calls while CONNECTING or DISCONNECTING are ignored.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Controller is closed")

            state = self._session.state
            if state == SessionState.DISCONNECTED:
                target = endpoint or self._session.endpoint
                if target is None:
                    raise ValueError("No endpoint selected; pass one to connect")
                self._begin_connect(target)
            elif state == SessionState.CONNECTED:
                self._begin_disconnect()
            else:
                logger.debug("Ignoring toggle while %s", state.value)

    def close(self) -> None:
        """Stop all timers, release the session's resources and settle DISCONNECTED."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancel_pending()
            self._stop_ticker()
            self._sampler.stop()
            self._release_address()
            session = self._session
            if session.state != SessionState.DISCONNECTED:
                # Teardown bypasses the transition table
                logger.debug("Closing while %s", session.state.value)
                session.state = SessionState.DISCONNECTED
                session.started_at = None
                session.elapsed_seconds = 0
                session.assessment = None
                self._publish()
        # Outside the lock: stopping the timer thread joins it, and it may
        # be waiting on our lock.
        if self._owns_timers:
            self._timers.stop()
        if self._owns_assessor:
            self._assessor.close()
        logger.debug("Session controller closed")

    def __enter__(self) -> SessionController:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Transitions ------------------------------------------------------

    def _begin_connect(self, endpoint: Endpoint) -> None:
        session = self._session
        session.endpoint = endpoint
        session.generation += 1
        generation = session.generation
        self._transition(SessionState.CONNECTING)
        session.assessment = ANALYZING_ASSESSMENT
        logger.info(
            "Connecting to %s (%s) [generation %d]",
            endpoint.id,
            endpoint.label,
            generation,
        )
        self._publish()
        self._pending = self._timers.call_later(
            self._handshake_delay, lambda: self._complete_handshake(generation)
        )

    def _complete_handshake(self, generation: int) -> None:
        with self._lock:
            session = self._session
            if (
                self._closed
                or generation != session.generation
                or session.state != SessionState.CONNECTING
            ):
                logger.debug("Dropping stale handshake for generation %d", generation)
                return
            self._pending = None
            endpoint = session.endpoint
            assert endpoint is not None

            try:
                address = self._addresses.acquire()
            except AssignmentFailed as exc:
                logger.warning("Handshake with %s failed: %s", endpoint.id, exc)
                self._transition(SessionState.DISCONNECTED)
                session.assessment = None
                self._publish(fault=SessionFault.ASSIGNMENT_FAILED)
                return

            session.assigned_address = address
            session.started_at = self._timers.time()
            session.elapsed_seconds = 0
            self._transition(SessionState.CONNECTED)
            logger.info("Connected to %s as %s", endpoint.id, address)

            self._ticker = self._timers.call_every(
                _TICK_INTERVAL, lambda: self._on_tick(generation)
            )
            self._sampler.start(self._on_sample, self._live_generator)
            self._publish()

            future = self._assessor.assess_async(endpoint.city, endpoint.region)
            future.add_done_callback(
                lambda f: self._timers.call_soon(
                    lambda: self._on_assessment(generation, f)
                )
            )

    def _begin_disconnect(self) -> None:
        session = self._session
        generation = session.generation
        self._stop_ticker()
        self._release_address()
        session.started_at = None
        session.elapsed_seconds = 0
        self._transition(SessionState.DISCONNECTING)
        self._sampler.start(self._on_sample, self._idle_generator)
        logger.info(
            "Disconnecting from %s", session.endpoint.id if session.endpoint else "?"
        )
        self._publish()
        self._pending = self._timers.call_later(
            self._settle_delay, lambda: self._complete_disconnect(generation)
        )

    def _complete_disconnect(self, generation: int) -> None:
        with self._lock:
            session = self._session
            if (
                self._closed
                or generation != session.generation
                or session.state != SessionState.DISCONNECTING
            ):
                return
            self._pending = None
            session.assessment = None
            self._transition(SessionState.DISCONNECTED)
            logger.info("Disconnected")
            self._publish()

    def _transition(self, new_state: SessionState) -> None:
        old_state = self._session.state
        if new_state not in _TRANSITIONS[old_state]:
            raise RuntimeError(
                f"Illegal session transition {old_state.value} -> {new_state.value}"
            )
        self._session.state = new_state
        logger.debug("Session %s -> %s", old_state.value, new_state.value)

    # -- Timer and async callbacks -----------------------------------------

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            session = self._session
            if (
                generation != session.generation
                or session.state != SessionState.CONNECTED
            ):
                return
            session.elapsed_seconds += 1
            self._publish()

    def _on_sample(self, sample: TrafficSample) -> None:
        # Called by the sampler with self._lock already held
        if self._closed:
            return
        self._buffer.append(sample)
        self._publish()

    def _on_assessment(
        self, generation: int, future: Future[SecurityAssessment]
    ) -> None:
        with self._lock:
            session = self._session
            if (
                self._closed
                or generation != session.generation
                or session.state not in _ASSESSABLE
            ):
                logger.debug(
                    "Dropping stale assessment for generation %d (now %d, %s)",
                    generation,
                    session.generation,
                    session.state.value,
                )
                return
            assert session.endpoint is not None

            if future.cancelled():
                assessment = fallback_assessment(session.endpoint.city)
            else:
                exc = future.exception()
                if exc is not None:
                    logger.warning("Assessment task failed: %s", exc)
                    assessment = fallback_assessment(session.endpoint.city)
                else:
                    assessment = future.result()

            session.assessment = assessment
            logger.info(
                "Assessment for %s: %s", session.endpoint.id, assessment.status.value
            )
            self._publish()

    # -- Helpers ----------------------------------------------------------

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _release_address(self) -> None:
        address = self._session.assigned_address
        if address is not None:
            self._addresses.release(address)
            self._session.assigned_address = None

    def _build_snapshot(self, fault: SessionFault | None = None) -> SessionSnapshot:
        session = self._session
        return SessionSnapshot(
            state=session.state,
            endpoint=session.endpoint,
            elapsed_seconds=session.elapsed_seconds,
            assigned_address=session.assigned_address,
            recent_samples=self._buffer.snapshot(),
            assessment=session.assessment,
            generation=session.generation,
            started_at=session.started_at,
            fault=fault,
        )

    def _publish(self, fault: SessionFault | None = None) -> None:
        self._bus.publish(self._build_snapshot(fault))
