"""Error taxonomy for the session core.

Nothing here is fatal to the process: ``AssignmentFailed`` drops the
session back to DISCONNECTED and ``AssessmentUnavailable`` is recovered
by the assessor's fallback.
"""

from __future__ import annotations


class TunnelCtlError(Exception):
    """Base class for all tunnelctl errors."""


class AssignmentFailed(TunnelCtlError):
    """No tunnel address could be assigned during the handshake."""


class AssessmentUnavailable(TunnelCtlError):
    """The security assessment backend failed or returned garbage."""


class CatalogError(TunnelCtlError, ValueError):
    """Malformed server catalog data or an unknown endpoint id."""
