"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from tunnelctl import __version__
from tunnelctl.catalog.loader import load_catalog, load_preset
from tunnelctl.catalog.models import ServerCatalog
from tunnelctl.config import TunnelCtlConfig


@click.group()
@click.version_option(version=__version__, prog_name="tunnelctl")
@click.option(
    "--catalog",
    "-c",
    type=click.Path(exists=True),
    help="Path to a YAML server catalog.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, catalog: str | None, verbose: bool) -> None:
    """tunnelctl — VPN session control with live telemetry and security reports."""
    ctx.ensure_object(dict)
    ctx.obj["catalog_path"] = catalog
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def resolve_catalog(ctx: click.Context, config: TunnelCtlConfig) -> ServerCatalog:
    """Catalog from --catalog, then config/env, then the built-in preset."""
    path = ctx.obj.get("catalog_path") or config.catalog_path
    if path:
        return load_catalog(path)
    return load_preset()


def _register_commands() -> None:
    from tunnelctl.cli.assess import assess  # noqa: F811
    from tunnelctl.cli.connect import connect  # noqa: F811
    from tunnelctl.cli.servers import servers  # noqa: F811

    main.add_command(servers)
    main.add_command(connect)
    main.add_command(assess)


_register_commands()
