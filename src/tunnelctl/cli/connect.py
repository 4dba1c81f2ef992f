"""CLI command: tunnelctl connect <SERVER_ID> — run a tunnel session."""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Callable

import click
from rich.console import Console
from rich.table import Table

from tunnelctl.cli import resolve_catalog
from tunnelctl.cli.assess import format_assessment
from tunnelctl.config import TunnelCtlConfig
from tunnelctl.errors import CatalogError
from tunnelctl.session.controller import SessionController
from tunnelctl.session.models import (
    ADDRESS_PLACEHOLDER,
    SessionFault,
    SessionSnapshot,
    SessionState,
)

console = Console(stderr=True)

_STATE_STYLE = {
    SessionState.DISCONNECTED: "dim",
    SessionState.CONNECTING: "cyan",
    SessionState.CONNECTED: "green",
    SessionState.DISCONNECTING: "red",
}


def format_elapsed(seconds: int) -> str:
    """Render a connection duration as HH:MM:SS."""
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class ConsoleReporter:
    """Observer that prints session changes and remembers what it saw."""

    def __init__(self, console: Console, show_samples: bool = True) -> None:
        self._console = console
        self._show_samples = show_samples
        self._cond = threading.Condition()
        self._last: SessionSnapshot | None = None
        self.fault: SessionFault | None = None
        self.address: str | None = None
        self.longest_elapsed = 0
        self.download_total = 0.0
        self.upload_total = 0.0
        self.sample_count = 0

    @property
    def last(self) -> SessionSnapshot | None:
        with self._cond:
            return self._last

    def __call__(self, snapshot: SessionSnapshot) -> None:
        with self._cond:
            previous = self._last
            self._last = snapshot
            self._report(previous, snapshot)
            self._cond.notify_all()

    def wait_for(
        self, predicate: Callable[[SessionSnapshot], bool], timeout: float
    ) -> bool:
        with self._cond:
            return self._cond.wait_for(
                lambda: self._last is not None and predicate(self._last),
                timeout=timeout,
            )

    def _report(self, previous: SessionSnapshot | None, snap: SessionSnapshot) -> None:
        if snap.fault == SessionFault.ASSIGNMENT_FAILED:
            self.fault = snap.fault
            self._console.print("  [red]✗ No tunnel address available[/red]")

        if previous is None or previous.state != snap.state:
            style = _STATE_STYLE[snap.state]
            address = snap.assigned_address or ADDRESS_PLACEHOLDER
            self._console.print(
                f"  [{style}]{snap.state.value.upper()}[/{style}]  IP {address}"
            )
            if snap.assigned_address:
                self.address = snap.assigned_address

        if snap.assessment is not None and (
            previous is None or previous.assessment != snap.assessment
        ):
            self._console.print(f"  {format_assessment(snap.assessment)}")

        self.longest_elapsed = max(self.longest_elapsed, snap.elapsed_seconds)

        sample = snap.latest_sample
        if (
            snap.state == SessionState.CONNECTED
            and sample is not None
            and not sample.is_zero
            and (previous is None or previous.latest_sample != sample)
        ):
            self.download_total += sample.download_mbps
            self.upload_total += sample.upload_mbps
            self.sample_count += 1
            if self._show_samples:
                self._console.print(
                    f"  [dim]{format_elapsed(snap.elapsed_seconds)}[/dim]  "
                    f"↓ {sample.download_mbps:.1f} Mbps  "
                    f"↑ {sample.upload_mbps:.1f} Mbps"
                )


def _settled(snap: SessionSnapshot) -> bool:
    return snap.state in (SessionState.CONNECTED, SessionState.DISCONNECTED)


@click.command()
@click.argument("server_id")
@click.option(
    "--duration",
    "-d",
    type=float,
    default=None,
    help="Disconnect automatically after this many seconds.",
)
@click.option(
    "--telemetry",
    type=click.Choice(["simulated", "interface"]),
    default=None,
    help="Throughput source while connected.",
)
@click.option("--quiet", "-q", is_flag=True, help="Do not print throughput samples.")
@click.pass_context
def connect(
    ctx: click.Context,
    server_id: str,
    duration: float | None,
    telemetry: str | None,
    quiet: bool,
) -> None:
    """Connect to SERVER_ID and report state, throughput, and security posture."""
    config = TunnelCtlConfig.load()
    if telemetry:
        config.telemetry = telemetry
    try:
        endpoint = resolve_catalog(ctx, config).get(server_id)
    except CatalogError as e:
        raise click.ClickException(str(e)) from e

    console.print(
        f"[bold]tunnelctl[/bold] connecting to [cyan]{endpoint.label}[/cyan] "
        f"({endpoint.id}, load {endpoint.load}%, {endpoint.latency_ms} ms)"
    )
    console.print("  Press Ctrl+C to disconnect.\n")

    stop_event = threading.Event()

    def _signal_handler(signum: int, frame: object) -> None:
        console.print("\n[dim]Disconnecting...[/dim]")
        stop_event.set()

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    reporter = ConsoleReporter(console, show_samples=not quiet)
    handshake_timeout = config.handshake_delay + 5.0
    settle_timeout = config.settle_delay + 5.0

    try:
        with SessionController.from_config(config) as controller:
            controller.subscribe(reporter)
            controller.toggle_connection(endpoint)

            reporter.wait_for(_settled, timeout=handshake_timeout)
            if controller.state != SessionState.CONNECTED:
                console.print("[red]Connection failed.[/red]")
                sys.exit(1)

            stop_event.wait(timeout=duration)

            controller.toggle_connection()
            reporter.wait_for(
                lambda s: s.state == SessionState.DISCONNECTED,
                timeout=settle_timeout,
            )
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)

    _print_summary(endpoint.label, reporter)


def _print_summary(label: str, reporter: ConsoleReporter) -> None:
    console.print("\n[bold]Session Summary[/bold]")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()

    table.add_row("Endpoint", label)
    table.add_row("Address", reporter.address or ADDRESS_PLACEHOLDER)
    table.add_row("Connected for", format_elapsed(reporter.longest_elapsed))
    if reporter.sample_count:
        table.add_row(
            "Avg download",
            f"{reporter.download_total / reporter.sample_count:.1f} Mbps",
        )
        table.add_row(
            "Avg upload",
            f"{reporter.upload_total / reporter.sample_count:.1f} Mbps",
        )
    console.print(table)
