"""Tests for the HTTP-01 and DNS-01 proof verifiers and their registry."""

from __future__ import annotations

import pytest

from acmesites.challenge.dns01 import Dns01Verifier
from acmesites.challenge.http01 import Http01Verifier, build_proof
from acmesites.challenge.verifier import ChallengeVerifier
from acmesites.core.errors import ResolverError, RetriableValidationError
from acmesites.core.types import ChallengeType
from acmesites.models.challenge import ChallengeResult, DnsProof
from tests.fakes import FakeResolver, ScriptedHttp

HTTP_RESULT = ChallengeResult(
    url="https://ca/chall/1",
    dns_name="a.example.com",
    proof=build_proof("a.example.com", "tok", "tok.thumb"),
)
DNS_RESULT = ChallengeResult(
    url="https://ca/chall/2",
    dns_name="a.example.com",
    proof=DnsProof(record_name="_acme-challenge.a.example.com", value="expected"),
)
PROOF_URL = "http://a.example.com/.well-known/acme-challenge/tok"


@pytest.fixture()
def http(monkeypatch):
    server = ScriptedHttp()
    monkeypatch.setattr("urllib.request.urlopen", server.urlopen)
    return server


class _TxtResolver(FakeResolver):
    def __init__(self, values=None, error=None):
        super().__init__()
        self.values = values or []
        self.error = error

    def txt_lookup(self, name):
        self.queries.append(("TXT", name))
        if self.error:
            raise self.error
        return list(self.values)


class TestHttp01Verifier:
    def test_observable(self, http):
        http.on("GET", PROOF_URL, body="tok.thumb\n")
        Http01Verifier().verify(HTTP_RESULT)

    def test_wrong_body(self, http):
        http.on("GET", PROOF_URL, body="<html>parked</html>")
        with pytest.raises(RetriableValidationError, match="Expected = tok.thumb"):
            Http01Verifier().verify(HTTP_RESULT)

    def test_not_found(self, http):
        with pytest.raises(RetriableValidationError, match="HTTP 404") as exc_info:
            Http01Verifier().verify(HTTP_RESULT)
        assert exc_info.value.resource == PROOF_URL

    def test_unreachable(self, monkeypatch):
        def refuse(req, timeout=None, context=None):
            raise OSError("no route to host")

        monkeypatch.setattr("urllib.request.urlopen", refuse)
        with pytest.raises(RetriableValidationError, match="Could not fetch"):
            Http01Verifier().verify(HTTP_RESULT)

    def test_rejects_dns_proof(self):
        with pytest.raises(TypeError):
            Http01Verifier().verify(DNS_RESULT)


class TestDns01Verifier:
    def test_value_among_others(self):
        Dns01Verifier(_TxtResolver(["stale", "expected"])).verify(DNS_RESULT)

    def test_no_records(self):
        with pytest.raises(RetriableValidationError, match="no TXT records"):
            Dns01Verifier(_TxtResolver()).verify(DNS_RESULT)

    def test_wrong_value(self):
        with pytest.raises(RetriableValidationError, match="Actual = stale"):
            Dns01Verifier(_TxtResolver(["stale"])).verify(DNS_RESULT)

    def test_resolver_failure_is_retriable(self):
        resolver = _TxtResolver(error=ResolverError("SERVFAIL"))
        with pytest.raises(RetriableValidationError, match="SERVFAIL"):
            Dns01Verifier(resolver).verify(DNS_RESULT)


class TestChallengeVerifier:
    def test_default_registry(self):
        registry = ChallengeVerifier.default(FakeResolver())
        assert isinstance(registry.get(ChallengeType.HTTP_01), Http01Verifier)
        assert isinstance(registry.get(ChallengeType.DNS_01), Dns01Verifier)

    def test_missing_verifier(self):
        with pytest.raises(LookupError, match="dns-01"):
            ChallengeVerifier().get(ChallengeType.DNS_01)

    def test_first_failure_stops(self):
        resolver = _TxtResolver(["other"])
        registry = ChallengeVerifier([Dns01Verifier(resolver)])
        with pytest.raises(RetriableValidationError):
            registry.verify([DNS_RESULT, DNS_RESULT], ChallengeType.DNS_01)
        assert len(resolver.queries) == 1
