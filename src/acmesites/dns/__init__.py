"""DNS zones, proof records and live lookups."""

from acmesites.dns.provider import DnsProvider
from acmesites.dns.registry import load_dns_provider
from acmesites.dns.resolver import DnsLookup, LiveResolver
from acmesites.dns.zones import match_zone, match_zones, verify_delegation

__all__ = [
    "DnsLookup",
    "DnsProvider",
    "LiveResolver",
    "load_dns_provider",
    "match_zone",
    "match_zones",
    "verify_delegation",
]
