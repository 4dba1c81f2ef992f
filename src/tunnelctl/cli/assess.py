"""CLI command: tunnelctl assess <SERVER_ID> — one-off security assessment."""

from __future__ import annotations

import click
from rich.console import Console

from tunnelctl.assessment.assessor import SecurityAssessor
from tunnelctl.assessment.backend import HttpAssessmentBackend
from tunnelctl.cli import resolve_catalog
from tunnelctl.config import TunnelCtlConfig
from tunnelctl.errors import CatalogError
from tunnelctl.session.models import AssessmentStatus, SecurityAssessment

console = Console()

_STATUS_STYLE = {
    AssessmentStatus.SECURE: "green",
    AssessmentStatus.VULNERABLE: "red",
    AssessmentStatus.ANALYZING: "cyan",
}


def format_assessment(assessment: SecurityAssessment) -> str:
    """Rich markup for an assessment, shared with the connect command."""
    style = _STATUS_STYLE[assessment.status]
    masking = "Active" if assessment.masking_active else "Inactive"
    return (
        f"[{style}]{assessment.status.value.upper()}[/{style}] "
        f"{assessment.summary} "
        f"[dim](encryption: {assessment.encryption_scheme}, "
        f"masking: {masking})[/dim]"
    )


@click.command()
@click.argument("server_id")
@click.pass_context
def assess(ctx: click.Context, server_id: str) -> None:
    """Request a security assessment for SERVER_ID without connecting."""
    config = TunnelCtlConfig.load()
    try:
        endpoint = resolve_catalog(ctx, config).get(server_id)
    except CatalogError as e:
        raise click.ClickException(str(e)) from e

    backend = None
    if config.assessment_url:
        backend = HttpAssessmentBackend(
            config.assessment_url,
            api_key=config.assessment_api_key,
            timeout=config.assessment_timeout,
        )
    assessor = SecurityAssessor(backend)
    try:
        result = assessor.assess(endpoint.city, endpoint.region)
    finally:
        assessor.close()

    console.print(f"[bold]{endpoint.label}[/bold] ({endpoint.id})")
    console.print(f"  {format_assessment(result)}")
