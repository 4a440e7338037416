"""Tests for DNS-01 proof publication."""

from __future__ import annotations

import pytest

from acmesites.core.errors import ZoneNotFoundError
from acmesites.dns.records import (
    PROOF_TTL,
    cleanup_proofs,
    group_by_record,
    plan_changes,
    relative_label,
    upsert_proofs,
)
from acmesites.models.challenge import ChallengeResult, DnsProof, HttpProof
from acmesites.models.dns import TxtRecordSet, Zone
from tests.fakes import FakeDnsProvider

ZONE = Zone("example.com")


def _dns(dns_name, value, record=None):
    record = record or f"_acme-challenge.{dns_name}"
    return ChallengeResult(
        url=f"https://ca/chall/{value}",
        dns_name=dns_name,
        proof=DnsProof(record_name=record, value=value),
    )


RESULTS = [
    _dns("a.example.com", "va"),
    _dns("b.example.com", "vb"),
    _dns("example.com", "apex"),
    _dns("example.com", "wild", record="_ACME-challenge.Example.com."),
]


class TestGrouping:
    def test_shared_record_set(self):
        assert group_by_record(RESULTS) == {
            "_acme-challenge.a.example.com": ("va",),
            "_acme-challenge.b.example.com": ("vb",),
            "_acme-challenge.example.com": ("apex", "wild"),
        }

    def test_duplicates_and_http_dropped(self):
        http = ChallengeResult(
            url="u",
            dns_name="a.example.com",
            proof=HttpProof(path="p", value="v", url="http://a.example.com/p"),
        )
        results = [_dns("a.example.com", "va"), _dns("a.example.com", "va"), http]
        assert group_by_record(results) == {"_acme-challenge.a.example.com": ("va",)}


class TestRelativeLabel:
    @pytest.mark.parametrize(
        "record,label",
        [
            ("_acme-challenge.www.example.com", "_acme-challenge.www"),
            ("_acme-challenge.example.com.", "_acme-challenge"),
            ("EXAMPLE.COM", "@"),
        ],
    )
    def test_label(self, record, label):
        assert relative_label(record, ZONE) == label


class TestUpsertProofs:
    def test_one_upsert_per_record_set(self):
        provider = FakeDnsProvider([ZONE])
        changes = upsert_proofs(provider, RESULTS, [ZONE])

        assert len(changes) == 3
        assert provider.count("upsert") == 3
        assert provider.records[("example.com", "_acme-challenge")] == TxtRecordSet(
            name="_acme-challenge", ttl=PROOF_TTL, values=("apex", "wild")
        )

    def test_values_replaced_not_merged(self):
        provider = FakeDnsProvider([ZONE])
        provider.records[("example.com", "_acme-challenge.a")] = TxtRecordSet(
            name="_acme-challenge.a", ttl=3600, values=("stale",)
        )
        upsert_proofs(provider, RESULTS[:1], [ZONE])
        assert provider.records[("example.com", "_acme-challenge.a")].values == ("va",)

    def test_rerun_skips_identical_record_sets(self):
        provider = FakeDnsProvider([ZONE])
        upsert_proofs(provider, RESULTS, [ZONE])
        upsert_proofs(provider, RESULTS, [ZONE])
        assert provider.count("upsert") == 3

    def test_unowned_names_fail_before_writing(self):
        provider = FakeDnsProvider([ZONE])
        results = [*RESULTS, _dns("c.unknown.tld", "vc")]
        with pytest.raises(ZoneNotFoundError, match="_acme-challenge.c.unknown.tld"):
            upsert_proofs(provider, results, [ZONE])
        assert provider.count("upsert") == 0


class TestCleanup:
    def test_deletes_each_record_set(self):
        provider = FakeDnsProvider([ZONE])
        upsert_proofs(provider, RESULTS, [ZONE])
        cleanup_proofs(provider, RESULTS, [ZONE])
        assert provider.records == {}
        assert provider.count("delete") == 3

    def test_plan_uses_deepest_zone(self):
        sub = Zone("sub.example.com")
        (change,) = plan_changes([_dns("x.sub.example.com", "v")], [ZONE, sub])
        assert change.zone is sub
        assert change.label == "_acme-challenge.x"
