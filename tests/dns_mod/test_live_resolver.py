"""Tests for acmesites.dns.resolver.LiveResolver with dnspython mocked out."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import dns.exception
import dns.resolver
import pytest

from acmesites.config.settings import DnsSettings
from acmesites.core.errors import ResolverError
from acmesites.core.types import ErrorKind
from acmesites.dns.resolver import LiveResolver


@pytest.fixture()
def backend(monkeypatch):
    """The mocked ``dns.resolver.Resolver`` instance every lookup gets."""
    instance = MagicMock()
    factory = MagicMock(return_value=instance)
    monkeypatch.setattr(dns.resolver, "Resolver", factory)
    instance.factory = factory
    return instance


def _ns(*targets):
    return [SimpleNamespace(target=SimpleNamespace(to_text=lambda t=t: t)) for t in targets]


def _txt(*records):
    return [SimpleNamespace(strings=tuple(parts)) for parts in records]


class TestLiveResolver:
    def test_ns_normalised(self, backend):
        backend.resolve.return_value = _ns("NS1-01.Azure-DNS.com.", "ns2-01.azure-dns.net.")
        assert LiveResolver().ns_lookup("example.com") == [
            "ns1-01.azure-dns.com",
            "ns2-01.azure-dns.net",
        ]
        backend.resolve.assert_called_once_with("example.com", "NS")

    def test_txt_strings_joined(self, backend):
        backend.resolve.return_value = _txt([b"abc", b"def"], [b"xyz"])
        assert LiveResolver().txt_lookup("_acme-challenge.example.com") == ["abcdef", "xyz"]

    @pytest.mark.parametrize("exc", [dns.resolver.NXDOMAIN, dns.resolver.NoAnswer])
    def test_absent_data_is_empty(self, backend, exc):
        backend.resolve.side_effect = exc()
        assert LiveResolver().txt_lookup("missing.example.com") == []

    def test_timeout_is_retriable(self, backend):
        backend.resolve.side_effect = dns.exception.Timeout()
        with pytest.raises(ResolverError, match="timed out") as exc_info:
            LiveResolver(timeout=2).ns_lookup("example.com")
        assert exc_info.value.kind == ErrorKind.RETRIABLE
        assert exc_info.value.resource == "example.com"

    def test_other_failures_wrapped(self, backend):
        backend.resolve.side_effect = dns.resolver.NoNameservers()
        with pytest.raises(ResolverError, match="DNS error"):
            LiveResolver().txt_lookup("example.com")

    def test_pinned_nameservers(self, backend):
        settings = DnsSettings(
            provider="azure", config={}, resolvers=("1.1.1.1",), timeout_seconds=3
        )
        backend.resolve.return_value = []
        LiveResolver.from_settings(settings).txt_lookup("example.com")

        backend.factory.assert_called_once_with(configure=False)
        assert backend.nameservers == ["1.1.1.1"]
        assert backend.lifetime == 3

    def test_system_configuration_by_default(self, backend):
        backend.resolve.return_value = []
        LiveResolver().ns_lookup("example.com")
        backend.factory.assert_called_once_with()
