"""Catalog data models — immutable endpoint metadata."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from tunnelctl.errors import CatalogError


@dataclass(frozen=True)
class Endpoint:
    """A single VPN server endpoint with static metadata."""

    id: str
    city: str
    region: str
    country: str
    load: int = 0
    latency_ms: int = 0
    latitude: float | None = None
    longitude: float | None = None
    flag: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise CatalogError("Endpoint id must not be empty")
        if not 0 <= self.load <= 100:
            raise CatalogError(
                f"Endpoint '{self.id}': load must be 0-100, got {self.load}"
            )
        if self.latency_ms < 0:
            raise CatalogError(
                f"Endpoint '{self.id}': latency_ms must be >= 0, got {self.latency_ms}"
            )

    @property
    def label(self) -> str:
        return f"{self.city}, {self.region}"


@dataclass(frozen=True)
class ServerCatalog:
    """Read-only, ordered collection of endpoints with unique ids."""

    name: str
    endpoints: tuple[Endpoint, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for ep in self.endpoints:
            if ep.id in seen:
                raise CatalogError(f"Duplicate endpoint id in catalog: {ep.id}")
            seen.add(ep.id)

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self.endpoints)

    def __len__(self) -> int:
        return len(self.endpoints)

    def __contains__(self, endpoint_id: object) -> bool:
        return any(ep.id == endpoint_id for ep in self.endpoints)

    def get(self, endpoint_id: str) -> Endpoint:
        """Return the endpoint with the given id or raise CatalogError."""
        for ep in self.endpoints:
            if ep.id == endpoint_id:
                return ep
        raise CatalogError(f"Unknown endpoint: {endpoint_id}")

    @property
    def default(self) -> Endpoint:
        """First endpoint in catalog order (the pre-selected server)."""
        if not self.endpoints:
            raise CatalogError(f"Catalog '{self.name}' is empty")
        return self.endpoints[0]

    def by_load(self) -> list[Endpoint]:
        """Endpoints sorted least-loaded first, ties broken by latency."""
        return sorted(self.endpoints, key=lambda ep: (ep.load, ep.latency_ms))
