"""Azure App Service hosting provider (``hosting.provider: appservice``).

Sites, host name bindings and certificates go through the
``Microsoft.Web`` ARM API.  HTTP-01 proof files are written with the
Kudu VFS API of the site's SCM endpoint using the site's publishing
credentials.  When ``secret_store.base_url`` is set, every uploaded
PFX is also imported into that Key Vault.

Provider ``config`` keys, in addition to the ARM ones documented in
:mod:`acmesites.azure.arm`::

    scm_suffix: "scm.azurewebsites.net"
    secret_store_access_token: "${VAULT_TOKEN}"   # optional
"""

from __future__ import annotations

import base64
import contextlib
import logging
import urllib.error
import urllib.request
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from acmesites.azure.arm import ArmClient
from acmesites.core.errors import DeploymentError, HostingError, is_retryable_status
from acmesites.hosting.base import SNI_ENABLED, HostingProvider
from acmesites.models.site import PRODUCTION_SLOT, HostedCertificate, Site

if TYPE_CHECKING:
    from acmesites.config.settings import (
        EnvironmentSettings,
        HostingSettings,
        SecretStoreSettings,
    )
    from acmesites.models.certificate import CertificateBundle

log = logging.getLogger(__name__)

API_VERSION = "2019-08-01"
VAULT_API_VERSION = "7.4"
_KUDU_ROOT = "site/wwwroot"


def _resource_group(resource_id: str) -> str:
    parts = resource_id.split("/")
    lowered = [p.lower() for p in parts]
    try:
        return parts[lowered.index("resourcegroups") + 1]
    except (ValueError, IndexError):
        return ""


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _site_from_arm(item: dict[str, Any]) -> Site:
    props = item.get("properties") or {}
    name, _, slot = item["name"].partition("/")
    bindings = {
        s["name"].lower(): s["thumbprint"]
        for s in props.get("hostNameSslStates") or ()
        if s.get("thumbprint") and s.get("sslState", "Disabled") != "Disabled"
    }
    return Site(
        resource_group=props.get("resourceGroup") or _resource_group(item.get("id", "")),
        name=name,
        slot=slot or PRODUCTION_SLOT,
        location=item.get("location", ""),
        host_names=tuple(props.get("hostNames") or ()),
        ssl_bindings=bindings,
        running=props.get("state", "Running") == "Running",
    )


def _certificate_from_arm(item: dict[str, Any]) -> HostedCertificate:
    props = item.get("properties") or {}
    return HostedCertificate(
        name=item["name"],
        thumbprint=(props.get("thumbprint") or "").upper(),
        resource_group=_resource_group(item.get("id", "")),
        expiration=_parse_datetime(props.get("expirationDate")),
        host_names=tuple(props.get("hostNames") or ()),
        tags=dict(item.get("tags") or {}),
    )


class AppServiceProvider(HostingProvider):
    """Hosting provider for Azure App Service web apps and slots."""

    def __init__(
        self,
        settings: HostingSettings,
        environment: EnvironmentSettings,
        secret_store: SecretStoreSettings,
    ) -> None:
        super().__init__(settings, environment, secret_store)
        self._config = settings.config
        self._arm = ArmClient(self._config, environment, error_cls=HostingError)
        self._vault: ArmClient | None = None
        if secret_store.base_url:
            vault_config = dict(self._config)
            vault_config["access_token"] = self._config.get("secret_store_access_token")
            self._vault = ArmClient(
                vault_config,
                environment,
                error_cls=HostingError,
                base_url=secret_store.base_url,
                scope="https://vault.azure.net/.default",
            )

    # -- paths --------------------------------------------------------------

    def _site_path(self, site: Site) -> str:
        path = (
            f"{self._arm.subscription_path}/resourceGroups/{site.resource_group}"
            f"/providers/Microsoft.Web/sites/{site.name}"
        )
        if not site.is_production:
            path += f"/slots/{site.slot}"
        return path

    def _certificate_path(self, resource_group: str, name: str) -> str:
        return (
            f"{self._arm.subscription_path}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Web/certificates/{name}"
        )

    # -- sites --------------------------------------------------------------

    def list_sites(self) -> list[Site]:
        path = f"{self._arm.subscription_path}/providers/Microsoft.Web/sites"
        sites = [_site_from_arm(item) for item in self._arm.paged(path, api_version=API_VERSION)]
        return sorted(sites, key=lambda s: (s.name, s.slot))

    def get_site(self, resource_group: str, name: str, slot: str = PRODUCTION_SLOT) -> Site:
        ref = Site(resource_group=resource_group, name=name, slot=slot)
        item = self._arm.request("GET", self._site_path(ref), api_version=API_VERSION)
        return _site_from_arm(item or {"name": name})

    def update_binding(self, site: Site, host_name: str, thumbprint: str) -> None:
        path = f"{self._site_path(site)}/hostNameBindings/{host_name}"
        body = {"properties": {"sslState": SNI_ENABLED, "thumbprint": thumbprint}}
        try:
            self._arm.request("PUT", path, api_version=API_VERSION, body=body)
        except HostingError as exc:
            msg = f"Binding {host_name} to {thumbprint} was rejected"
            raise DeploymentError(
                msg,
                target=f"PUT {self._arm.url(path, API_VERSION)}",
                status=exc.status,
                kind=exc.kind,
            ) from exc
        log.info("Bound %s on %s to %s", host_name, site.key, thumbprint)

    # -- content (Kudu) -----------------------------------------------------

    def _scm_host(self, site: Site) -> str:
        suffix = self._config.get("scm_suffix", "scm.azurewebsites.net")
        label = site.name if site.is_production else f"{site.name}-{site.slot}"
        return f"{label}.{suffix}"

    def _publishing_credentials(self, site: Site) -> tuple[str, str]:
        body = self._arm.request(
            "POST",
            f"{self._site_path(site)}/config/publishingcredentials/list",
            api_version=API_VERSION,
        ) or {}
        props = body.get("properties") or {}
        return props.get("publishingUserName", ""), props.get("publishingPassword", "")

    def _kudu(self, site: Site, method: str, path: str, data: bytes | None = None) -> None:
        user, password = self._publishing_credentials(site)
        url = f"https://{self._scm_host(site)}/api/vfs/{_KUDU_ROOT}/{path.lstrip('/')}"
        token = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Authorization", f"Basic {token}")
        req.add_header("If-Match", "*")
        try:
            timeout = self._config.get("timeout_seconds", 30)
            with urllib.request.urlopen(req, timeout=timeout):  # noqa: S310
                pass
        except urllib.error.HTTPError as exc:
            if method == "DELETE" and exc.code == 404:  # noqa: PLR2004
                return
            detail = ""
            with contextlib.suppress(Exception):
                detail = exc.read().decode("utf-8", errors="replace")[:500]
            msg = f"Kudu {method} {url} returned HTTP {exc.code}: {detail}"
            raise HostingError(
                msg,
                retryable=is_retryable_status(exc.code),
                status=exc.code,
                resource=url,
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach Kudu at {url}: {exc}"
            raise HostingError(msg, retryable=True, resource=url) from exc

    def write_file(self, site: Site, path: str, content: str) -> None:
        self._kudu(site, "PUT", path, content.encode("utf-8"))
        log.info("Wrote %s on %s", path, site.key)

    def delete_file(self, site: Site, path: str) -> None:
        self._kudu(site, "DELETE", path)
        log.info("Deleted %s on %s", path, site.key)

    # -- certificates -------------------------------------------------------

    def list_certificates(self) -> list[HostedCertificate]:
        path = f"{self._arm.subscription_path}/providers/Microsoft.Web/certificates"
        return [
            _certificate_from_arm(item) for item in self._arm.paged(path, api_version=API_VERSION)
        ]

    def get_certificate(self, resource_group: str, name: str) -> HostedCertificate | None:
        item = self._arm.request(
            "GET",
            self._certificate_path(resource_group, name),
            api_version=API_VERSION,
            allow_not_found=True,
        )
        return _certificate_from_arm(item) if item else None

    def _import_to_secret_store(self, bundle: CertificateBundle) -> None:
        if self._vault is None:
            return
        # Key Vault object names allow only alphanumerics and dashes.
        name = bundle.dns_names[0].replace("*", "wildcard").replace(".", "-")
        path = f"/certificates/{name}/import"
        value = base64.b64encode(bundle.pfx).decode("ascii")
        try:
            self._vault.request(
                "POST",
                path,
                api_version=VAULT_API_VERSION,
                body={"value": value, "pwd": bundle.password},
            )
        except HostingError as exc:
            msg = f"Secret store import of certificate {bundle.certificate_name} was rejected"
            raise DeploymentError(
                msg,
                target=f"POST {self._vault.url(path, VAULT_API_VERSION)}",
                status=exc.status,
                payload_size=len(value),
                kind=exc.kind,
            ) from exc
        log.info("Imported %s into the secret store as %s", bundle.certificate_name, name)

    def upload_certificate(
        self,
        site: Site,
        bundle: CertificateBundle,
        tags: dict[str, str],
    ) -> HostedCertificate:
        self._import_to_secret_store(bundle)

        path = self._certificate_path(site.resource_group, bundle.certificate_name)
        body = {
            "location": site.location,
            "tags": tags,
            "properties": {
                "pfxBlob": base64.b64encode(bundle.pfx).decode("ascii"),
                "password": bundle.password,
            },
        }
        payload_size = len(base64.b64encode(bundle.pfx))
        log.info("PUT certificate %s (payload length %d)", bundle.certificate_name, payload_size)
        try:
            item = self._arm.request("PUT", path, api_version=API_VERSION, body=body)
        except HostingError as exc:
            msg = f"Import of certificate {bundle.certificate_name} was rejected"
            raise DeploymentError(
                msg,
                target=f"PUT {self._arm.url(path, API_VERSION)}",
                status=exc.status,
                payload_size=payload_size,
                kind=exc.kind,
            ) from exc
        if item and item.get("name"):
            return _certificate_from_arm(item)
        return HostedCertificate(
            name=bundle.certificate_name,
            thumbprint=bundle.thumbprint,
            resource_group=site.resource_group,
            expiration=bundle.not_after,
            host_names=bundle.dns_names,
            tags=dict(tags),
        )

    def delete_certificate(self, certificate: HostedCertificate) -> None:
        self._arm.request(
            "DELETE",
            self._certificate_path(certificate.resource_group, certificate.name),
            api_version=API_VERSION,
            allow_not_found=True,
        )
        log.info("Deleted certificate %s", certificate.name)
