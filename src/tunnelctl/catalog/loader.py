"""Load ServerCatalog objects from YAML files."""

from __future__ import annotations

import importlib.resources
from pathlib import Path

import yaml

from tunnelctl.catalog.models import Endpoint, ServerCatalog
from tunnelctl.errors import CatalogError

DEFAULT_PRESET = "us"


def load_catalog(path: str | Path) -> ServerCatalog:
    """Load a catalog from a YAML file path."""
    text = Path(path).read_text(encoding="utf-8")
    return load_catalog_from_string(text)


def load_catalog_from_string(text: str) -> ServerCatalog:
    """Parse a YAML string into a ServerCatalog."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid catalog YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogError("Catalog YAML must be a mapping")
    return _build_catalog(data)


def load_preset(name: str = DEFAULT_PRESET) -> ServerCatalog:
    """Load one of the catalogs shipped with the package."""
    pkg = importlib.resources.files("tunnelctl.catalog.presets")
    resource = pkg.joinpath(f"{name}.yaml")
    if not resource.is_file():
        raise CatalogError(f"Unknown catalog preset: {name}")
    return load_catalog_from_string(resource.read_text(encoding="utf-8"))


def _build_catalog(data: dict) -> ServerCatalog:
    servers = data.get("servers", [])
    if not isinstance(servers, list):
        raise CatalogError("'servers' must be a list")
    return ServerCatalog(
        name=str(data.get("name", "unnamed")),
        endpoints=tuple(_parse_endpoint(s) for s in servers),
    )


def _parse_endpoint(raw: object) -> Endpoint:
    if not isinstance(raw, dict):
        raise CatalogError(f"Server entry must be a mapping, got {raw!r}")
    try:
        return Endpoint(
            id=str(raw["id"]),
            city=str(raw["city"]),
            region=str(raw.get("region", "")),
            country=str(raw.get("country", "")),
            load=int(raw.get("load", 0)),
            latency_ms=int(raw.get("latency_ms", 0)),
            latitude=_optional_float(raw.get("latitude")),
            longitude=_optional_float(raw.get("longitude")),
            flag=str(raw.get("flag", "")),
        )
    except CatalogError:
        raise
    except KeyError as exc:
        raise CatalogError(f"Server entry missing field {exc}: {raw!r}") from exc
    except (TypeError, ValueError) as exc:
        raise CatalogError(f"Invalid server entry {raw!r}: {exc}") from exc


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]
