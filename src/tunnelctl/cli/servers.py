"""CLI command: tunnelctl servers — list catalog endpoints."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from tunnelctl.cli import resolve_catalog
from tunnelctl.config import TunnelCtlConfig
from tunnelctl.errors import CatalogError

console = Console()


def _load_style(load: int) -> str:
    if load >= 80:
        return "red"
    if load >= 50:
        return "yellow"
    return "green"


@click.command()
@click.option(
    "--sort",
    type=click.Choice(["catalog", "load"]),
    default="catalog",
    help="Order servers as listed or least-loaded first.",
)
@click.pass_context
def servers(ctx: click.Context, sort: str) -> None:
    """List available VPN endpoints."""
    try:
        catalog = resolve_catalog(ctx, TunnelCtlConfig.load())
    except CatalogError as e:
        raise click.ClickException(str(e)) from e

    endpoints = catalog.by_load() if sort == "load" else list(catalog)

    table = Table(title=f"Catalog: {catalog.name}", header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Location")
    table.add_column("Country")
    table.add_column("Load", justify="right")
    table.add_column("Ping", justify="right")

    for ep in endpoints:
        style = _load_style(ep.load)
        table.add_row(
            ep.id,
            f"{ep.flag} {ep.label}".strip(),
            ep.country,
            f"[{style}]{ep.load}%[/{style}]",
            f"{ep.latency_ms} ms",
        )
    console.print(table)
