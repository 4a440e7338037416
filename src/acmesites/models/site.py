"""Hosting-side value objects: domain sets, sites and hosted certificates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from acmesites.models.dns import normalize_name

PRODUCTION_SLOT = "production"


@dataclass(frozen=True)
class DomainSet:
    """Ordered, de-duplicated DNS names that share one certificate."""

    dns_names: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.dns_names:
            msg = "A domain set needs at least one DNS name"
            raise ValueError(msg)

    @classmethod
    def of(cls, names: list[str] | tuple[str, ...]) -> DomainSet:
        """Normalise and de-duplicate *names*, keeping first occurrences."""
        seen: dict[str, None] = {}
        for name in names:
            normalized = normalize_name(name)
            if normalized:
                seen.setdefault(normalized, None)
        return cls(tuple(seen))

    @property
    def primary(self) -> str:
        return self.dns_names[0]

    def __iter__(self):
        return iter(self.dns_names)

    def __len__(self) -> int:
        return len(self.dns_names)


@dataclass(frozen=True)
class Site:
    """A hosted web site (or deployment slot) with its TLS bindings."""

    resource_group: str
    name: str
    slot: str = PRODUCTION_SLOT
    location: str = ""
    host_names: tuple[str, ...] = ()
    ssl_bindings: dict[str, str] = field(default_factory=dict)
    running: bool = True

    @property
    def key(self) -> str:
        """Stable identity ``resource_group/name/slot``."""
        return f"{self.resource_group}/{self.name}/{self.slot}"

    @property
    def is_production(self) -> bool:
        return self.slot == PRODUCTION_SLOT

    @classmethod
    def parse_key(cls, key: str) -> Site:
        """Build a bare site reference from ``RG/NAME[/SLOT]``."""
        parts = key.split("/")
        if len(parts) not in (2, 3) or not all(parts):
            msg = f"Invalid site reference '{key}', expected RESOURCE_GROUP/NAME[/SLOT]"
            raise ValueError(msg)
        slot = parts[2] if len(parts) == 3 else PRODUCTION_SLOT  # noqa: PLR2004
        return cls(resource_group=parts[0], name=parts[1], slot=slot)

    def custom_host_names(self, excluded_suffixes: tuple[str, ...] = ()) -> tuple[str, ...]:
        """Host names not ending in a platform-provided DNS suffix."""
        suffixes = tuple(normalize_name(s) for s in excluded_suffixes)
        return tuple(
            h
            for h in (normalize_name(n) for n in self.host_names)
            if not any(h == s or h.endswith(f".{s}") for s in suffixes)
        )

    def thumbprint_for(self, host_name: str) -> str | None:
        bindings = {normalize_name(k): v for k, v in self.ssl_bindings.items()}
        return bindings.get(normalize_name(host_name))

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_group": self.resource_group,
            "name": self.name,
            "slot": self.slot,
            "location": self.location,
            "host_names": list(self.host_names),
            "ssl_bindings": dict(self.ssl_bindings),
            "running": self.running,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Site:
        return cls(
            resource_group=data["resource_group"],
            name=data["name"],
            slot=data.get("slot", PRODUCTION_SLOT),
            location=data.get("location", ""),
            host_names=tuple(data.get("host_names", ())),
            ssl_bindings=dict(data.get("ssl_bindings", {})),
            running=data.get("running", True),
        )


@dataclass(frozen=True)
class HostedCertificate:
    """A certificate registered in the hosting layer's certificate store."""

    name: str
    thumbprint: str
    resource_group: str
    expiration: datetime | None = None
    host_names: tuple[str, ...] = ()
    tags: dict[str, str] = field(default_factory=dict)
