"""Session data models — connection state, traffic samples, assessments."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from tunnelctl.catalog.models import Endpoint

# Shown by presentation layers when no tunnel address is assigned.
ADDRESS_PLACEHOLDER = "---.---.---.---"


class SessionState(enum.Enum):
    """Lifecycle state of a tunnel session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class SessionFault(enum.Enum):
    """One-shot conditions surfaced to observers."""

    ASSIGNMENT_FAILED = "assignment_failed"


class AssessmentStatus(enum.Enum):
    """Security posture of the active route."""

    ANALYZING = "analyzing"
    SECURE = "secure"
    VULNERABLE = "vulnerable"


@dataclass(frozen=True)
class TrafficSample:
    """Throughput observed over one sampling interval."""

    timestamp_seconds: int
    download_mbps: float = 0.0
    upload_mbps: float = 0.0

    @property
    def is_zero(self) -> bool:
        return self.download_mbps == 0 and self.upload_mbps == 0


@dataclass(frozen=True)
class SecurityAssessment:
    """Security posture report for a connected endpoint."""

    status: AssessmentStatus
    summary: str
    encryption_scheme: str
    masking_active: bool


# Shown while the handshake is still running.
ANALYZING_ASSESSMENT = SecurityAssessment(
    status=AssessmentStatus.ANALYZING,
    summary="Initiating secure handshake...",
    encryption_scheme="negotiating",
    masking_active=False,
)


@dataclass
class Session:
    """Mutable session record, owned and mutated only by SessionController."""

    state: SessionState = SessionState.DISCONNECTED
    endpoint: Endpoint | None = None
    elapsed_seconds: int = 0
    assigned_address: str | None = None
    started_at: float | None = None
    assessment: SecurityAssessment | None = None
    generation: int = 0


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a session delivered to observers."""

    state: SessionState
    endpoint: Endpoint | None
    elapsed_seconds: int
    assigned_address: str | None
    recent_samples: tuple[TrafficSample, ...]
    assessment: SecurityAssessment | None
    generation: int
    started_at: float | None = None
    fault: SessionFault | None = None

    @property
    def latest_sample(self) -> TrafficSample | None:
        return self.recent_samples[-1] if self.recent_samples else None
