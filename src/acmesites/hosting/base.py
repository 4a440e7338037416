"""Abstract hosting control plane.

The hosting layer owns the sites, their host name bindings and the
certificate store the workflow deploys into.  Subclass
:class:`HostingProvider` and set ``hosting.provider`` to
``ext:package.module.ClassName`` to target another platform.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmesites.config.settings import (
        EnvironmentSettings,
        HostingSettings,
        SecretStoreSettings,
    )
    from acmesites.models.certificate import CertificateBundle
    from acmesites.models.site import HostedCertificate, Site

SNI_ENABLED = "SniEnabled"


class HostingProvider(abc.ABC):
    """Base class for hosting control planes.

    Implementations raise :class:`~acmesites.core.errors.HostingError`
    for failed calls, with ``retryable`` set for throttling, 5xx and
    transport failures.
    """

    def __init__(
        self,
        settings: HostingSettings,
        environment: EnvironmentSettings,
        secret_store: SecretStoreSettings,
    ) -> None:
        self.settings = settings
        self.environment = environment
        self.secret_store = secret_store

    # -- sites --------------------------------------------------------------

    @abc.abstractmethod
    def list_sites(self) -> list[Site]:
        """Every site of the subscription, ordered by name."""

    @abc.abstractmethod
    def get_site(self, resource_group: str, name: str, slot: str) -> Site:
        """Fetch one site (or slot) with its current bindings."""

    @abc.abstractmethod
    def write_file(self, site: Site, path: str, content: str) -> None:
        """Write *content* at *path* below the site content root."""

    @abc.abstractmethod
    def delete_file(self, site: Site, path: str) -> None:
        """Delete *path* below the content root; absent is not an error."""

    @abc.abstractmethod
    def update_binding(self, site: Site, host_name: str, thumbprint: str) -> None:
        """Bind *host_name* to the certificate *thumbprint* with SNI."""

    # -- certificates -------------------------------------------------------

    @abc.abstractmethod
    def list_certificates(self) -> list[HostedCertificate]:
        """Every certificate in the store."""

    @abc.abstractmethod
    def get_certificate(self, resource_group: str, name: str) -> HostedCertificate | None:
        """Fetch a certificate by name, or ``None``."""

    @abc.abstractmethod
    def upload_certificate(
        self,
        site: Site,
        bundle: CertificateBundle,
        tags: dict[str, str],
    ) -> HostedCertificate:
        """Import *bundle* under :attr:`CertificateBundle.certificate_name`.

        Raises :class:`~acmesites.core.errors.DeploymentError` when the
        control plane rejects the import.
        """

    @abc.abstractmethod
    def delete_certificate(self, certificate: HostedCertificate) -> None:
        """Delete a certificate; absent is not an error."""
