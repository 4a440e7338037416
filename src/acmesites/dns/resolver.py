"""Live DNS lookups through dnspython.

Absent data (NXDOMAIN, no answer) is an empty result; every other
resolver failure raises :class:`ResolverError`, which is retriable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import dns.exception
import dns.resolver

from acmesites.core.errors import ResolverError
from acmesites.models.dns import normalize_name

if TYPE_CHECKING:
    from acmesites.config.settings import DnsSettings

log = logging.getLogger(__name__)


class DnsLookup(Protocol):
    def ns_lookup(self, name: str) -> list[str]: ...

    def txt_lookup(self, name: str) -> list[str]: ...


class LiveResolver:
    """Recursive resolver, optionally pinned to ``dns.resolvers``."""

    def __init__(self, nameservers: tuple[str, ...] = (), timeout: float = 10) -> None:
        self._nameservers = list(nameservers)
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: DnsSettings) -> LiveResolver:
        return cls(settings.resolvers, settings.timeout_seconds)

    def _resolver(self) -> dns.resolver.Resolver:
        # A fresh resolver per query keeps lookups thread-safe and uncached.
        if self._nameservers:
            resolver = dns.resolver.Resolver(configure=False)
            resolver.nameservers = list(self._nameservers)
        else:
            resolver = dns.resolver.Resolver()
        resolver.lifetime = self._timeout
        return resolver

    def _resolve(self, name: str, rdtype: str) -> dns.resolver.Answer | None:
        try:
            return self._resolver().resolve(name, rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            log.debug("No %s records for %s", rdtype, name)
            return None
        except dns.exception.Timeout as exc:
            msg = f"DNS query {rdtype} {name} timed out after {self._timeout}s"
            raise ResolverError(msg, resource=name) from exc
        except dns.exception.DNSException as exc:
            msg = f"DNS error querying {rdtype} {name}: {exc}"
            raise ResolverError(msg, resource=name) from exc

    def ns_lookup(self, name: str) -> list[str]:
        """Name servers of *name*, normalised (lower case, no trailing dot)."""
        answer = self._resolve(name, "NS")
        if answer is None:
            return []
        return [normalize_name(rdata.target.to_text()) for rdata in answer]

    def txt_lookup(self, name: str) -> list[str]:
        """TXT values of *name*, character-strings joined per record."""
        answer = self._resolve(name, "TXT")
        if answer is None:
            return []
        return [b"".join(rdata.strings).decode("utf-8", errors="replace") for rdata in answer]
