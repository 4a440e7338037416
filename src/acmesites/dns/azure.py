"""Azure DNS provider (``dns.provider: azure``).

Talks to the ``Microsoft.Network/dnsZones`` ARM API.  Zones are listed
across the whole subscription; record sets are addressed through the
zone's resource id.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmesites.azure.arm import ArmClient
from acmesites.core.errors import DnsProviderError
from acmesites.dns.provider import DnsProvider
from acmesites.models.dns import TxtRecordSet, Zone, normalize_name

if TYPE_CHECKING:
    from acmesites.config.settings import DnsSettings, EnvironmentSettings

log = logging.getLogger(__name__)

API_VERSION = "2018-05-01"


class AzureDnsProvider(DnsProvider):
    """DNS provider backed by Azure DNS zones."""

    def __init__(self, settings: DnsSettings, environment: EnvironmentSettings) -> None:
        super().__init__(settings, environment)
        self._arm = ArmClient(settings.config, environment, error_cls=DnsProviderError)

    def list_zones(self) -> list[Zone]:
        path = f"{self._arm.subscription_path}/providers/Microsoft.Network/dnszones"
        zones = [
            Zone(
                name=normalize_name(item["name"]),
                id=item["id"],
                name_servers=tuple(
                    normalize_name(ns)
                    for ns in (item.get("properties") or {}).get("nameServers") or ()
                ),
            )
            for item in self._arm.paged(path, api_version=API_VERSION)
        ]
        log.debug("Listed %d Azure DNS zones", len(zones))
        return zones

    def get_txt_record_set(self, zone: Zone, name: str) -> TxtRecordSet | None:
        body = self._arm.request(
            "GET",
            f"{zone.id}/TXT/{name}",
            api_version=API_VERSION,
            allow_not_found=True,
        )
        if body is None:
            return None
        props = body.get("properties") or {}
        values = tuple(v for rec in props.get("TXTRecords") or () for v in rec.get("value", ()))
        return TxtRecordSet(name=name, ttl=props.get("TTL", 3600), values=values)

    def upsert_txt_record_set(self, zone: Zone, record_set: TxtRecordSet) -> None:
        body = {
            "properties": {
                "TTL": record_set.ttl,
                "TXTRecords": [{"value": [v]} for v in record_set.values],
            },
        }
        self._arm.request(
            "PUT",
            f"{zone.id}/TXT/{record_set.name}",
            api_version=API_VERSION,
            body=body,
        )
        log.info(
            "Upserted TXT %s in zone %s (%d values)",
            record_set.name,
            zone.name,
            len(record_set.values),
        )

    def delete_txt_record_set(self, zone: Zone, name: str) -> None:
        self._arm.request(
            "DELETE",
            f"{zone.id}/TXT/{name}",
            api_version=API_VERSION,
            allow_not_found=True,
        )
        log.info("Deleted TXT %s in zone %s", name, zone.name)
