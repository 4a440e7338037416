"""Tests for checkpointed workflow state and the ACME projections it embeds."""

from __future__ import annotations

import json

import pytest

from acmesites.core.types import (
    AuthorizationStatus,
    ChallengeStatus,
    ChallengeType,
    OrderStatus,
    WorkflowStep,
)
from acmesites.models.acme import Authorization, Order
from acmesites.models.challenge import ChallengeResult, DnsProof, HttpProof
from acmesites.models.site import DomainSet
from acmesites.models.workflow import WorkflowState, make_workflow_id
from tests.fakes import make_site

ORDER_PAYLOAD = {
    "status": "pending",
    "authorizations": ["https://ca/authz/1", "https://ca/authz/2"],
    "finalize": "https://ca/order/1/finalize",
    "identifiers": [
        {"type": "dns", "value": "a.example.com"},
        {"type": "dns", "value": "*.example.com"},
    ],
}


class TestWorkflowId:
    def test_deterministic_and_order_insensitive(self):
        site = make_site()
        first = make_workflow_id(site, DomainSet.of(["a.example.com", "b.example.com"]))
        second = make_workflow_id(site, DomainSet.of(["b.example.com", "a.example.com"]))
        assert first == second
        assert len(first) == 20

    def test_differs_per_slot(self):
        names = DomainSet.of(["a.example.com"])
        assert make_workflow_id(make_site(), names) != make_workflow_id(
            make_site(slot="staging"), names
        )


class TestWorkflowState:
    def _state(self):
        return WorkflowState.start(
            make_site(ssl_bindings={"a.example.com": "OLD"}),
            DomainSet.of(["a.example.com", "*.example.com"]),
            ChallengeType.DNS_01,
            replaces="OLD",
        )

    def test_start(self):
        state = self._state()
        assert state.step == WorkflowStep.DISCOVER
        assert state.order is None
        assert state.restarts == 0
        assert state.replaces == "OLD"

    def test_advance_returns_copy(self):
        state = self._state()
        moved = state.advance(WorkflowStep.ORDER_CREATED, restarts=1)
        assert state.step == WorkflowStep.DISCOVER
        assert moved.step == WorkflowStep.ORDER_CREATED
        assert moved.restarts == 1
        assert moved.workflow_id == state.workflow_id

    def test_round_trip_through_json(self):
        state = self._state().advance(
            WorkflowStep.CHALLENGES_PREPARED,
            order=Order.from_acme("https://ca/order/1", ORDER_PAYLOAD),
            challenge_results=(
                ChallengeResult(
                    url="https://ca/chall/1",
                    dns_name="example.com",
                    proof=DnsProof(record_name="_acme-challenge.example.com", value="v1"),
                ),
                ChallengeResult(
                    url="https://ca/chall/2",
                    dns_name="a.example.com",
                    proof=HttpProof(
                        path=".well-known/acme-challenge/tok",
                        value="tok.thumb",
                        url="http://a.example.com/.well-known/acme-challenge/tok",
                    ),
                ),
            ),
            certificate={"name": "a.example.com-T", "thumbprint": "T"},
            error={"type": "X", "kind": "fatal", "detail": "d"},
        )
        restored = WorkflowState.from_dict(json.loads(json.dumps(state.to_dict())))
        assert restored == state

    def test_unknown_proof_kind(self):
        with pytest.raises(ValueError, match="Unknown proof kind"):
            ChallengeResult.from_dict({"url": "u", "dns_name": "d", "kind": "tls"})


class TestAcmeProjections:
    def test_order_from_acme(self):
        order = Order.from_acme("https://ca/order/1", ORDER_PAYLOAD)
        assert order.status is OrderStatus.PENDING
        assert order.identifiers == ("a.example.com", "*.example.com")
        assert order.certificate is None

    def test_authorization_challenge_lookup(self):
        authz = Authorization.from_acme(
            "https://ca/authz/1",
            {
                "identifier": {"type": "dns", "value": "example.com"},
                "status": "pending",
                "wildcard": True,
                "challenges": [
                    {"type": "dns-01", "url": "https://ca/chall/1", "token": "t1"},
                    {"type": "http-01", "url": "https://ca/chall/2", "status": "valid"},
                ],
            },
        )
        assert authz.status is AuthorizationStatus.PENDING
        assert authz.wildcard
        assert authz.challenge_of_type("dns-01").status is ChallengeStatus.PENDING
        assert authz.challenge_of_type("http-01").token == ""
        assert authz.challenge_of_type("tls-alpn-01") is None
