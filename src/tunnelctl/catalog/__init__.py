"""Server catalog — immutable list of candidate VPN endpoints."""

from tunnelctl.catalog.loader import (
    load_catalog,
    load_catalog_from_string,
    load_preset,
)
from tunnelctl.catalog.models import Endpoint, ServerCatalog

__all__ = [
    "Endpoint",
    "ServerCatalog",
    "load_catalog",
    "load_catalog_from_string",
    "load_preset",
]
