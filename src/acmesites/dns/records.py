"""Publish and remove DNS-01 proof records.

Challenge results are grouped by record name (case-insensitive), so
``example.com`` and ``*.example.com`` share one TXT record set holding
both values.  Each group becomes exactly one upsert: the record set's
values are *replaced* with the group's values at a short TTL, which
makes re-running the step harmless.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from acmesites.dns.zones import match_zones
from acmesites.models.challenge import DnsProof
from acmesites.models.dns import TxtRecordSet, Zone, normalize_name

if TYPE_CHECKING:
    from acmesites.dns.provider import DnsProvider
    from acmesites.models.challenge import ChallengeResult

log = logging.getLogger(__name__)

PROOF_TTL = 60


@dataclass(frozen=True)
class RecordChange:
    """One TXT record set to write, resolved against its zone."""

    zone: Zone
    label: str
    values: tuple[str, ...]

    @property
    def record_set(self) -> TxtRecordSet:
        return TxtRecordSet(name=self.label, ttl=PROOF_TTL, values=self.values)


def relative_label(record_name: str, zone: Zone) -> str:
    """Strip ``.<zone>`` from a fully-qualified record name."""
    name = normalize_name(record_name)
    zone_name = normalize_name(zone.name)
    if name == zone_name:
        return "@"
    return name[: -(len(zone_name) + 1)]


def group_by_record(results: Iterable[ChallengeResult]) -> dict[str, tuple[str, ...]]:
    """Group DNS proof values by record name, de-duplicated in order.

    HTTP results are ignored.
    """
    groups: dict[str, dict[str, None]] = {}
    for result in results:
        if isinstance(result.proof, DnsProof):
            values = groups.setdefault(normalize_name(result.proof.record_name), {})
            values.setdefault(result.proof.value, None)
    return {name: tuple(values) for name, values in groups.items()}


def plan_changes(results: Iterable[ChallengeResult], zones: Iterable[Zone]) -> list[RecordChange]:
    """Resolve each record group to its zone and zone-relative label.

    Raises :class:`ZoneNotFoundError` listing every record no zone owns.
    """
    groups = group_by_record(results)
    owners = match_zones(groups, zones)
    return [
        RecordChange(zone=owners[name], label=relative_label(name, owners[name]), values=values)
        for name, values in groups.items()
    ]


def upsert_proofs(
    provider: DnsProvider,
    results: Iterable[ChallengeResult],
    zones: Iterable[Zone],
) -> list[RecordChange]:
    """Write every proof record set; returns the changes applied."""
    changes = plan_changes(results, zones)
    for change in changes:
        existing = provider.get_txt_record_set(change.zone, change.label)
        if existing is not None and existing.values == change.values and existing.ttl == PROOF_TTL:
            log.debug("TXT %s in %s already up to date", change.label, change.zone.name)
            continue
        provider.upsert_txt_record_set(change.zone, change.record_set)
    return changes


def cleanup_proofs(
    provider: DnsProvider,
    results: Iterable[ChallengeResult],
    zones: Iterable[Zone],
) -> list[RecordChange]:
    """Delete every proof record set written by :func:`upsert_proofs`."""
    changes = plan_changes(results, zones)
    for change in changes:
        provider.delete_txt_record_set(change.zone, change.label)
    return changes
