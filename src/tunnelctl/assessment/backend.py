"""Assessment backend — the external service that rates a route's security.

The backend is a narrow interface: given a location, return a mapping with
``status``, ``summary``, ``encryptionScheme`` and ``maskingActive``. Any
failure surfaces as AssessmentUnavailable; payload validation lives in
parse_payload() so every backend shares one definition of "malformed".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal, Protocol, runtime_checkable

import httpx
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from tunnelctl.errors import AssessmentUnavailable
from tunnelctl.session.models import AssessmentStatus, SecurityAssessment

logger = logging.getLogger(__name__)


@runtime_checkable
class AssessmentBackend(Protocol):
    """Protocol for security assessment backends."""

    def fetch(self, city: str, region: str) -> Mapping[str, Any]:
        """Return the raw assessment payload or raise AssessmentUnavailable."""
        ...


class AssessmentPayload(BaseModel):
    """Wire shape of a backend response."""

    model_config = ConfigDict(extra="ignore")

    status: Literal["secure", "vulnerable", "analyzing"]
    summary: str = Field(min_length=1)
    encryption_scheme: str = Field(
        min_length=1,
        validation_alias=AliasChoices(
            "encryptionScheme", "encryption_scheme", "encryption"
        ),
    )
    masking_active: bool = Field(
        validation_alias=AliasChoices("maskingActive", "masking_active", "masking"),
    )

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("masking_active", mode="before")
    @classmethod
    def _masking_from_label(cls, value: Any) -> Any:
        # Some backends answer "Active"/"Inactive" instead of a bool
        if isinstance(value, str):
            label = value.strip().lower()
            if label == "active":
                return True
            if label == "inactive":
                return False
        return value

    def to_assessment(self) -> SecurityAssessment:
        return SecurityAssessment(
            status=AssessmentStatus(self.status),
            summary=self.summary,
            encryption_scheme=self.encryption_scheme,
            masking_active=self.masking_active,
        )


def parse_payload(payload: object) -> SecurityAssessment:
    """Validate a raw backend payload. Raises AssessmentUnavailable if malformed."""
    if not isinstance(payload, Mapping):
        raise AssessmentUnavailable(
            f"Assessment payload must be an object, got {type(payload).__name__}"
        )
    try:
        return AssessmentPayload.model_validate(dict(payload)).to_assessment()
    except ValidationError as exc:
        raise AssessmentUnavailable(f"Malformed assessment payload: {exc}") from exc


class HttpAssessmentBackend:
    """Posts ``{"city", "region"}`` as JSON to an assessment endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def fetch(self, city: str, region: str) -> Mapping[str, Any]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        try:
            response = self._client.post(
                self._url,
                json={"city": city, "region": region},
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise AssessmentUnavailable(
                f"Assessment backend returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AssessmentUnavailable(
                f"Assessment backend unreachable: {exc}"
            ) from exc
        except ValueError as exc:
            raise AssessmentUnavailable(
                "Assessment backend returned invalid JSON"
            ) from exc

        if not isinstance(data, Mapping):
            raise AssessmentUnavailable(
                "Assessment backend returned a non-object body"
            )
        logger.debug("Assessment backend answered for %s, %s", city, region)
        return data

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
