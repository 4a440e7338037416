"""DNS value objects: zones and TXT record sets."""

from __future__ import annotations

from dataclasses import dataclass, field


def normalize_name(name: str) -> str:
    """Lower-case a DNS name and strip the trailing root dot."""
    return name.strip().rstrip(".").lower()


@dataclass(frozen=True)
class Zone:
    """A DNS zone hosted by the DNS provider (read-only)."""

    name: str
    id: str = ""
    name_servers: tuple[str, ...] = ()


@dataclass(frozen=True)
class TxtRecordSet:
    """A TXT record set scoped to a zone; ``name`` is zone-relative."""

    name: str
    ttl: int = 3600
    values: tuple[str, ...] = field(default_factory=tuple)
