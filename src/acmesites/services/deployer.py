"""Import issued certificates into the hosting layer and bind them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmesites.core.errors import HostingError
from acmesites.models.dns import normalize_name
from acmesites.services.discovery import ISSUER_TAG

if TYPE_CHECKING:
    from acmesites.hosting.base import HostingProvider
    from acmesites.models.certificate import CertificateBundle
    from acmesites.models.site import HostedCertificate, Site

log = logging.getLogger(__name__)


class Deployer:
    """Idempotent upload, binding and retirement of certificates.

    Parameters
    ----------
    hosting:
        Target control plane.
    tags:
        Tags stamped on every uploaded certificate; renewal discovery
        recognises its own certificates by them.

    """

    def __init__(self, hosting: HostingProvider, tags: dict[str, str]) -> None:
        self._hosting = hosting
        self._tags = dict(tags)

    def upload(self, site: Site, bundle: CertificateBundle) -> HostedCertificate:
        """Import *bundle* unless the same certificate is already stored."""
        existing = self._hosting.get_certificate(site.resource_group, bundle.certificate_name)
        if existing is not None and existing.thumbprint.upper() == bundle.thumbprint:
            log.info("Certificate %s already uploaded", bundle.certificate_name)
            return existing
        return self._hosting.upload_certificate(site, bundle, self._tags)

    def bind(self, site: Site, dns_names: tuple[str, ...], thumbprint: str) -> list[str]:
        """Point every host name of *site* in *dns_names* at *thumbprint*.

        Returns the host names whose binding was changed.
        """
        current = self._hosting.get_site(site.resource_group, site.name, site.slot)
        host_names = {normalize_name(h) for h in current.host_names}
        changed = []
        for name in dns_names:
            host = normalize_name(name)
            if host not in host_names:
                log.debug("%s is not a host name of %s, not binding", host, site.key)
                continue
            bound = current.thumbprint_for(host)
            if bound is not None and bound.upper() == thumbprint.upper():
                log.debug("%s already bound to %s", host, thumbprint)
                continue
            self._hosting.update_binding(current, host, thumbprint)
            changed.append(host)
        log.info("Bound %d host name(s) of %s to %s", len(changed), site.key, thumbprint)
        return changed

    def retire(self, site: Site, thumbprint: str) -> bool:
        """Delete the certificate *thumbprint* once no binding uses it.

        Only certificates carrying this deployer's issuer tag are deleted.
        Best effort: control-plane failures are logged, not raised.
        """
        try:
            current = self._hosting.get_site(site.resource_group, site.name, site.slot)
            if any(t.upper() == thumbprint.upper() for t in current.ssl_bindings.values()):
                log.info("Certificate %s is still bound on %s, keeping it", thumbprint, site.key)
                return False
            for cert in self._hosting.list_certificates():
                if cert.thumbprint.upper() != thumbprint.upper():
                    continue
                if cert.tags.get(ISSUER_TAG) != self._tags.get(ISSUER_TAG):
                    log.info("Certificate %s carries another issuer tag, keeping it", cert.name)
                    return False
                self._hosting.delete_certificate(cert)
                log.info("Deleted replaced certificate %s (%s)", cert.name, thumbprint)
                return True
        except HostingError:
            log.warning("Could not retire certificate %s", thumbprint, exc_info=True)
        return False
