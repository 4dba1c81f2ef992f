"""Global configuration — XDG paths, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "tunnelctl"
    return Path.home() / ".config" / "tunnelctl"


@dataclass
class TunnelCtlConfig:
    """Application-wide configuration."""

    config_dir: Path = field(default_factory=_default_config_dir)
    catalog_path: Path | None = None
    handshake_delay: float = 2.5
    settle_delay: float = 1.5
    sample_interval: float = 1.0
    sample_capacity: int = 20
    assessment_url: str = ""
    assessment_api_key: str = ""
    assessment_timeout: float = 10.0
    telemetry: str = "simulated"  # "simulated" or "interface"
    interface: str = ""
    verbose: bool = False

    @classmethod
    def load(cls) -> TunnelCtlConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        env_catalog = os.environ.get("TUNNELCTL_CATALOG")
        if env_catalog:
            config.catalog_path = Path(env_catalog)
        else:
            # Fall back to the user's servers.yaml if one exists
            user_catalog = config.config_dir / "servers.yaml"
            if user_catalog.is_file():
                config.catalog_path = user_catalog

        env_handshake = os.environ.get("TUNNELCTL_HANDSHAKE_DELAY")
        if env_handshake:
            config.handshake_delay = float(env_handshake)

        env_settle = os.environ.get("TUNNELCTL_SETTLE_DELAY")
        if env_settle:
            config.settle_delay = float(env_settle)

        config.assessment_url = os.environ.get("TUNNELCTL_ASSESSMENT_URL", "")
        config.assessment_api_key = os.environ.get("TUNNELCTL_API_KEY", "")

        env_telemetry = os.environ.get("TUNNELCTL_TELEMETRY")
        if env_telemetry:
            if env_telemetry not in ("simulated", "interface"):
                raise ValueError(
                    f"TUNNELCTL_TELEMETRY must be 'simulated' or 'interface', "
                    f"got {env_telemetry!r}"
                )
            config.telemetry = env_telemetry

        config.interface = os.environ.get("TUNNELCTL_INTERFACE", "")

        return config
