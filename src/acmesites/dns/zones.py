"""Match DNS names to the managed zone that owns them.

A zone owns a name when the name equals the zone name or ends with
``.<zone>``; among owners the longest zone name wins, and the first
zone in provider order wins a tie.  Comparison ignores case and
trailing dots.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from acmesites.core.errors import DelegationMismatchError, ZoneNotFoundError
from acmesites.models.dns import Zone, normalize_name

if TYPE_CHECKING:
    from acmesites.dns.resolver import DnsLookup

log = logging.getLogger(__name__)


def _owns(zone_name: str, dns_name: str) -> bool:
    return dns_name == zone_name or dns_name.endswith(f".{zone_name}")


def match_zone(dns_name: str, zones: Iterable[Zone]) -> Zone | None:
    """Return the zone owning *dns_name*, or ``None``."""
    name = normalize_name(dns_name)
    best: Zone | None = None
    best_len = -1
    for zone in zones:
        zone_name = normalize_name(zone.name)
        # strict ">" keeps the first of equally long candidates
        if _owns(zone_name, name) and len(zone_name) > best_len:
            best, best_len = zone, len(zone_name)
    return best


def match_zones(dns_names: Iterable[str], zones: Iterable[Zone]) -> dict[str, Zone]:
    """Map each name to its owning zone.

    Raises
    ------
    ZoneNotFoundError
        Listing every name no zone owns.

    """
    zones = list(zones)
    matched: dict[str, Zone] = {}
    missing: list[str] = []
    for name in dns_names:
        zone = match_zone(name, zones)
        if zone is None:
            missing.append(name)
        else:
            matched[name] = zone
    if missing:
        raise ZoneNotFoundError(missing)
    return matched


def verify_delegation(zones: Iterable[Zone], resolver: DnsLookup) -> None:
    """Check that each zone is delegated to its provider's name servers.

    Zones without known name servers are skipped.  Each zone is checked
    once even when it appears several times.

    Raises
    ------
    DelegationMismatchError
        If the live NS set shares no server with the provider's.
    ResolverError
        On a transient lookup failure.

    """
    checked: set[str] = set()
    for zone in zones:
        zone_name = normalize_name(zone.name)
        if zone_name in checked or not zone.name_servers:
            continue
        checked.add(zone_name)

        expected = [normalize_name(ns) for ns in zone.name_servers]
        actual = [normalize_name(ns) for ns in resolver.ns_lookup(zone_name)]
        if not set(expected) & set(actual):
            raise DelegationMismatchError(zone_name, expected, actual)
        log.debug("Zone %s is delegated to %s", zone_name, ",".join(actual))
