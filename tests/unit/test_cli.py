"""Tests for CLI commands using Click's CliRunner."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from tunnelctl.cli import main
from tunnelctl.cli.connect import format_elapsed


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    for name in (
        "TUNNELCTL_CATALOG",
        "TUNNELCTL_ASSESSMENT_URL",
        "TUNNELCTL_API_KEY",
        "TUNNELCTL_TELEMETRY",
        "TUNNELCTL_INTERFACE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_main_help():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "tunnelctl" in result.output
    assert "servers" in result.output
    assert "connect" in result.output
    assert "assess" in result.output


def test_main_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_connect_help():
    runner = CliRunner()
    result = runner.invoke(main, ["connect", "--help"])
    assert result.exit_code == 0
    assert "SERVER_ID" in result.output
    assert "--duration" in result.output


def test_servers_lists_preset():
    runner = CliRunner()
    result = runner.invoke(main, ["servers"])
    assert result.exit_code == 0
    assert "us-ny" in result.output
    assert "Chicago" in result.output


def test_servers_from_catalog_file(fixtures_dir):
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["--catalog", str(fixtures_dir / "small_catalog.yaml"), "servers"],
    )
    assert result.exit_code == 0
    assert "lab-a" in result.output
    assert "us-ny" not in result.output


def test_servers_sorted_by_load(fixtures_dir):
    runner = CliRunner()
    result = runner.invoke(
        main,
        [
            "--catalog",
            str(fixtures_dir / "small_catalog.yaml"),
            "servers",
            "--sort",
            "load",
        ],
    )
    assert result.exit_code == 0
    assert result.output.index("lab-b") < result.output.index("lab-a")


def test_assess_without_backend():
    runner = CliRunner()
    result = runner.invoke(main, ["assess", "us-chi"])
    assert result.exit_code == 0
    assert "Chicago, IL" in result.output
    assert "VULNERABLE" in result.output
    assert "not configured" in result.output


def test_assess_unknown_server():
    runner = CliRunner()
    result = runner.invoke(main, ["assess", "mars-1"])
    assert result.exit_code == 1
    assert "Unknown endpoint" in result.output


def test_connect_short_session(monkeypatch):
    monkeypatch.setenv("TUNNELCTL_HANDSHAKE_DELAY", "0.05")
    monkeypatch.setenv("TUNNELCTL_SETTLE_DELAY", "0.05")
    runner = CliRunner()
    result = runner.invoke(main, ["connect", "us-ny", "--duration", "0.2", "-q"])
    assert result.exit_code == 0, result.output
    assert "CONNECTING" in result.output
    assert "CONNECTED" in result.output
    assert "DISCONNECTED" in result.output
    assert "Session Summary" in result.output
    assert "New York, NY" in result.output


def test_connect_unknown_server():
    runner = CliRunner()
    result = runner.invoke(main, ["connect", "nowhere"])
    assert result.exit_code == 1
    assert "Unknown endpoint" in result.output


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "00:00:00"),
        (59, "00:00:59"),
        (61, "00:01:01"),
        (3600, "01:00:00"),
        (90061, "25:01:01"),
        (-5, "00:00:00"),
    ],
)
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected
