"""Tests for the App Service hosting provider against a scripted ARM endpoint."""

from __future__ import annotations

import base64
from datetime import UTC, datetime

import pytest

from acmesites.config.settings import build_settings
from acmesites.core.errors import DeploymentError, HostingError
from acmesites.core.plugins import PluginLoadError
from acmesites.core.types import ErrorKind
from acmesites.hosting.appservice import AppServiceProvider
from acmesites.hosting.registry import load_hosting_provider
from acmesites.models.certificate import CertificateBundle
from acmesites.models.site import HostedCertificate, Site
from tests.fakes import ScriptedHttp

ARM = "https://management.example"
VAULT = "https://vault.example"
RG = f"{ARM}/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Web"
SITE = Site(resource_group="rg", name="app", location="westeurope")
SLOT = Site(resource_group="rg", name="app", slot="staging", location="westeurope")
BUNDLE = CertificateBundle(
    dns_names=("*.example.com", "example.com"),
    thumbprint="ABC123",
    not_after=datetime(2027, 1, 1, tzinfo=UTC),
    pem_chain="",
    pfx=b"pfx-bytes",
    password="P@ssw0rd",
)


def _settings(secret_store=None, provider="appservice"):
    data = {
        "acme": {"directory_url": "https://acme.example.com/directory"},
        "environment": {"resource_manager_url": ARM},
        "hosting": {
            "provider": provider,
            "config": {
                "subscription_id": "sub-1",
                "access_token": "arm-token",
                "secret_store_access_token": "vault-token",
            },
        },
    }
    if secret_store:
        data["secret_store"] = {"base_url": secret_store}
    return build_settings(data)


@pytest.fixture()
def http(monkeypatch):
    server = ScriptedHttp()
    monkeypatch.setattr("urllib.request.urlopen", server.urlopen)
    return server


@pytest.fixture()
def provider():
    return load_hosting_provider(_settings())


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_builtin(self, provider):
        assert isinstance(provider, AppServiceProvider)

    def test_unknown(self):
        with pytest.raises(PluginLoadError, match="hosting provider"):
            load_hosting_provider(_settings(provider="heroku"))


# ---------------------------------------------------------------------------
# Sites and bindings
# ---------------------------------------------------------------------------


class TestSites:
    def test_list_sites(self, http, provider):
        http.on(
            "GET",
            f"{ARM}/subscriptions/sub-1/providers/Microsoft.Web/sites",
            body={
                "value": [
                    {
                        "id": "/subscriptions/sub-1/resourceGroups/RG-Web/providers/"
                        "Microsoft.Web/sites/web",
                        "name": "web",
                        "location": "westeurope",
                        "properties": {
                            "state": "Stopped",
                            "hostNames": ["web.azurewebsites.net", "www.example.com"],
                            "hostNameSslStates": [
                                {"name": "WWW.example.com", "sslState": "SniEnabled",
                                 "thumbprint": "T1"},
                                {"name": "web.azurewebsites.net", "sslState": "Disabled"},
                            ],
                        },
                    },
                ],
            },
        )
        (site,) = provider.list_sites()
        assert site.resource_group == "RG-Web"
        assert site.slot == "production"
        assert not site.running
        assert site.ssl_bindings == {"www.example.com": "T1"}
        assert site.host_names == ("web.azurewebsites.net", "www.example.com")

    def test_get_slot(self, http, provider):
        http.on(
            "GET",
            f"{RG}/sites/app/slots/staging",
            body={"name": "app/staging", "properties": {"resourceGroup": "rg"}},
        )
        site = provider.get_site("rg", "app", "staging")
        assert (site.name, site.slot, site.running) == ("app", "staging", True)

    def test_update_binding(self, http, provider):
        url = f"{RG}/sites/app/hostNameBindings/www.example.com"
        http.on("PUT", url, body={})
        provider.update_binding(SITE, "www.example.com", "ABC123")
        (req,) = http.sent("PUT", url)
        assert http.json_body(req) == {
            "properties": {"sslState": "SniEnabled", "thumbprint": "ABC123"},
        }

    def test_rejected_binding_is_deployment_error(self, http, provider):
        http.on("PUT", f"{RG}/sites/app/hostNameBindings/www.example.com", 400, body="bad")
        with pytest.raises(DeploymentError) as exc_info:
            provider.update_binding(SITE, "www.example.com", "ABC123")
        err = exc_info.value
        assert err.status == 400
        assert err.kind == ErrorKind.FATAL
        assert err.target.startswith(f"PUT {RG}/sites/app/hostNameBindings/www.example.com?")


# ---------------------------------------------------------------------------
# Proof files
# ---------------------------------------------------------------------------


class TestFiles:
    def _credentials(self, http, site_path):
        http.on(
            "POST",
            f"{site_path}/config/publishingcredentials/list",
            body={"properties": {"publishingUserName": "$app", "publishingPassword": "pw"}},
        )

    def test_write_file(self, http, provider):
        self._credentials(http, f"{RG}/sites/app")
        url = "https://app.scm.azurewebsites.net/api/vfs/site/wwwroot/.well-known/acme-challenge/t"
        http.on("PUT", url, 201)

        provider.write_file(SITE, ".well-known/acme-challenge/t", "t.thumb")

        (req,) = http.sent("PUT", url)
        assert req.data == b"t.thumb"
        expected = base64.b64encode(b"$app:pw").decode()
        assert req.get_header("Authorization") == f"Basic {expected}"
        assert req.get_header("If-match") == "*"

    def test_slot_scm_host(self, http, provider):
        self._credentials(http, f"{RG}/sites/app/slots/staging")
        url = "https://app-staging.scm.azurewebsites.net/api/vfs/site/wwwroot/f"
        http.on("PUT", url, 201)
        provider.write_file(SLOT, "f", "x")
        assert len(http.sent("PUT", url)) == 1

    def test_delete_missing_file(self, http, provider):
        self._credentials(http, f"{RG}/sites/app")
        provider.delete_file(SITE, ".well-known/acme-challenge/gone")

    def test_write_failure(self, http, provider):
        self._credentials(http, f"{RG}/sites/app")
        http.on("PUT", "https://app.scm.azurewebsites.net/api/vfs/site/wwwroot/f", 503)
        with pytest.raises(HostingError) as exc_info:
            provider.write_file(SITE, "f", "x")
        assert exc_info.value.retryable


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


class TestCertificates:
    def test_upload(self, http, provider):
        url = f"{RG}/certificates/wildcard.example.com-ABC123"
        http.on(
            "PUT",
            url,
            body={
                "id": "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Web/"
                "certificates/wildcard.example.com-ABC123",
                "name": "wildcard.example.com-ABC123",
                "tags": {"Issuer": "acmesites"},
                "properties": {
                    "thumbprint": "abc123",
                    "expirationDate": "2027-01-01T00:00:00Z",
                    "hostNames": ["*.example.com", "example.com"],
                },
            },
        )
        cert = provider.upload_certificate(SITE, BUNDLE, {"Issuer": "acmesites"})

        assert cert == HostedCertificate(
            name="wildcard.example.com-ABC123",
            thumbprint="ABC123",
            resource_group="rg",
            expiration=datetime(2027, 1, 1, tzinfo=UTC),
            host_names=("*.example.com", "example.com"),
            tags={"Issuer": "acmesites"},
        )
        body = http.json_body(http.sent("PUT", url)[0])
        assert body["location"] == "westeurope"
        assert body["properties"]["pfxBlob"] == base64.b64encode(b"pfx-bytes").decode()
        assert body["properties"]["password"] == "P@ssw0rd"

    def test_upload_without_response_body(self, http, provider):
        http.on("PUT", f"{RG}/certificates/wildcard.example.com-ABC123")
        cert = provider.upload_certificate(SITE, BUNDLE, {"Issuer": "acmesites"})
        assert cert.thumbprint == "ABC123"
        assert cert.expiration == BUNDLE.not_after

    def test_rejected_upload_reports_payload_size(self, http, provider):
        http.on("PUT", f"{RG}/certificates/wildcard.example.com-ABC123", 400, body="bad pfx")
        with pytest.raises(DeploymentError) as exc_info:
            provider.upload_certificate(SITE, BUNDLE, {})
        assert exc_info.value.payload_size == len(base64.b64encode(b"pfx-bytes"))
        assert "payload_size=" in exc_info.value.detail

    def test_secret_store_import(self, http):
        provider = load_hosting_provider(_settings(secret_store=VAULT))
        http.on("POST", f"{VAULT}/certificates/wildcard-example-com/import", body={})
        http.on("PUT", f"{RG}/certificates/wildcard.example.com-ABC123")

        provider.upload_certificate(SITE, BUNDLE, {})

        (req,) = http.sent("POST", f"{VAULT}/certificates/wildcard-example-com/import")
        assert req.get_header("Authorization") == "Bearer vault-token"
        assert http.json_body(req)["pwd"] == "P@ssw0rd"
        assert "api-version=7.4" in req.full_url

    def test_rejected_secret_store_import(self, http):
        provider = load_hosting_provider(_settings(secret_store=VAULT))
        url = f"{VAULT}/certificates/wildcard-example-com/import"
        http.on("POST", url, 400, body="bad certificate")

        with pytest.raises(DeploymentError) as exc_info:
            provider.upload_certificate(SITE, BUNDLE, {})

        err = exc_info.value
        assert err.status == 400
        assert err.kind == ErrorKind.FATAL
        assert err.target.startswith(f"POST {url}?api-version=7.4")
        assert err.payload_size == len(base64.b64encode(b"pfx-bytes"))
        assert http.sent("PUT", f"{RG}/certificates/wildcard.example.com-ABC123") == []

    def test_list_and_delete(self, http, provider):
        http.on(
            "GET",
            f"{ARM}/subscriptions/sub-1/providers/Microsoft.Web/certificates",
            body={
                "value": [
                    {
                        "id": "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Web/"
                        "certificates/old",
                        "name": "old",
                        "properties": {"thumbprint": "OLD"},
                    },
                ],
            },
        )
        (cert,) = provider.list_certificates()
        assert (cert.name, cert.resource_group, cert.expiration) == ("old", "rg", None)

        provider.delete_certificate(cert)
        assert len(http.sent("DELETE", f"{RG}/certificates/old")) == 1

    def test_get_missing_certificate(self, http, provider):
        assert provider.get_certificate("rg", "absent") is None
