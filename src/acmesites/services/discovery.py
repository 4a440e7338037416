"""Find certificates this tool issued that are about to expire.

A certificate qualifies when its ``Issuer`` tag matches the configured
issuer tag, its ``Endpoint`` tag matches the CA host, and it expires
within ``renew_before_days``.  Each site binding such a certificate
yields one renewal request for the certificate's host names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from acmesites.models.site import DomainSet, HostedCertificate, Site

if TYPE_CHECKING:
    from acmesites.core.types import ChallengeType
    from acmesites.hosting.base import HostingProvider

log = logging.getLogger(__name__)

ISSUER_TAG = "Issuer"
ENDPOINT_TAG = "Endpoint"


@dataclass(frozen=True)
class IssueRequest:
    """One certificate to obtain for one site."""

    site: Site
    domain_set: DomainSet
    challenge_type: ChallengeType
    replaces: str | None = None


class RenewalDiscovery:
    def __init__(
        self,
        hosting: HostingProvider,
        *,
        issuer_tag: str,
        endpoint: str,
        renew_before_days: int,
        challenge_type: ChallengeType,
        dns_suffixes: tuple[str, ...] = (),
        running_only: bool = True,
    ) -> None:
        self._hosting = hosting
        self._issuer_tag = issuer_tag
        self._endpoint = endpoint
        self._renew_before = timedelta(days=renew_before_days)
        self._challenge_type = challenge_type
        self._dns_suffixes = dns_suffixes
        self._running_only = running_only

    def is_managed(self, cert: HostedCertificate) -> bool:
        if cert.tags.get(ISSUER_TAG) != self._issuer_tag:
            return False
        endpoint = cert.tags.get(ENDPOINT_TAG)
        return endpoint is None or endpoint == self._endpoint

    def expiring(self, now: datetime | None = None) -> list[HostedCertificate]:
        cutoff = (now or datetime.now(UTC)) + self._renew_before
        return [
            cert
            for cert in self._hosting.list_certificates()
            if self.is_managed(cert) and cert.expiration is not None and cert.expiration <= cutoff
        ]

    def sites(self) -> list[Site]:
        """Sites with at least one custom host name."""
        return [
            site
            for site in self._hosting.list_sites()
            if (site.running or not self._running_only)
            and site.custom_host_names(self._dns_suffixes)
        ]

    def discover(self, now: datetime | None = None) -> list[IssueRequest]:
        certificates = self.expiring(now)
        if not certificates:
            log.info("No certificates due for renewal")
            return []

        sites = self.sites()
        requests: list[IssueRequest] = []
        seen: set[tuple[str, tuple[str, ...]]] = set()
        for cert in certificates:
            bound = [
                site
                for site in sites
                if any(t.upper() == cert.thumbprint.upper() for t in site.ssl_bindings.values())
            ]
            if not bound:
                log.info("Certificate %s is not bound to any site, skipping", cert.name)
                continue
            if not cert.host_names:
                log.warning("Certificate %s lists no host names, skipping", cert.name)
                continue
            domain_set = DomainSet.of(cert.host_names)
            for site in bound:
                key = (site.key, domain_set.dns_names)
                if key in seen:
                    continue
                seen.add(key)
                requests.append(
                    IssueRequest(
                        site=site,
                        domain_set=domain_set,
                        challenge_type=self._challenge_type,
                        replaces=cert.thumbprint,
                    ),
                )
                log.info(
                    "Renewing %s on %s (expires %s)",
                    ",".join(domain_set),
                    site.key,
                    cert.expiration.isoformat() if cert.expiration else "?",
                )
        return requests
