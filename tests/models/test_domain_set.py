"""Tests for the hosting-side value objects in acmesites.models.site."""

from __future__ import annotations

import pytest

from acmesites.models.certificate import CertificateBundle
from acmesites.models.site import DomainSet, Site
from tests.fakes import make_site


class TestDomainSet:
    def test_normalises_and_deduplicates(self):
        ds = DomainSet.of(["WWW.Example.com.", "www.example.com", " api.example.com "])
        assert ds.dns_names == ("www.example.com", "api.example.com")
        assert ds.primary == "www.example.com"
        assert len(ds) == 2
        assert list(ds) == ["www.example.com", "api.example.com"]

    def test_keeps_wildcard(self):
        assert DomainSet.of(["*.Example.com"]).dns_names == ("*.example.com",)

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="at least one"):
            DomainSet.of(["", "  "])


class TestSite:
    def test_key(self):
        assert make_site(slot="staging").key == "rg/app/staging"

    @pytest.mark.parametrize(
        "key,slot",
        [("rg/app", "production"), ("rg/app/staging", "staging")],
    )
    def test_parse_key(self, key, slot):
        site = Site.parse_key(key)
        assert (site.resource_group, site.name, site.slot) == ("rg", "app", slot)

    @pytest.mark.parametrize("key", ["app", "rg//app", "a/b/c/d", ""])
    def test_parse_key_rejects(self, key):
        with pytest.raises(ValueError, match="Invalid site reference"):
            Site.parse_key(key)

    def test_custom_host_names_exclude_platform_suffixes(self):
        site = make_site("www.example.com", "app.azurewebsites.net", "azurewebsites.net")
        assert site.custom_host_names(("azurewebsites.net",)) == ("www.example.com",)

    def test_suffix_match_is_label_aligned(self):
        site = make_site("myazurewebsites.net")
        assert site.custom_host_names(("azurewebsites.net",)) == ("myazurewebsites.net",)

    def test_thumbprint_for_ignores_case(self):
        site = make_site(ssl_bindings={"WWW.example.com": "T1"})
        assert site.thumbprint_for("www.EXAMPLE.com.") == "T1"
        assert site.thumbprint_for("api.example.com") is None

    def test_dict_round_trip(self):
        site = make_site(ssl_bindings={"a.example.com": "T1"}, running=False)
        assert Site.from_dict(site.to_dict()) == site


class TestCertificateBundle:
    def test_repr_hides_key_material(self):
        from datetime import UTC, datetime

        bundle = CertificateBundle(
            dns_names=("a.example.com",),
            thumbprint="T",
            not_after=datetime(2027, 1, 1, tzinfo=UTC),
            pem_chain="",
            pfx=b"secret-pfx",
            password="secret-password",
        )
        assert "secret" not in repr(bundle)
        assert "secret" not in str(bundle.metadata())
