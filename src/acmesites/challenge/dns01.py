"""DNS-01 proofs: derivation and external verification."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from acmesites.challenge.base import ProofVerifier
from acmesites.core.errors import ResolverError, RetriableValidationError
from acmesites.core.jws import dns01_txt_value
from acmesites.core.types import ChallengeType
from acmesites.models.challenge import ChallengeResult, DnsProof
from acmesites.models.dns import normalize_name

if TYPE_CHECKING:
    from acmesites.dns.resolver import DnsLookup

log = logging.getLogger(__name__)

RECORD_PREFIX = "_acme-challenge"


def build_proof(identifier: str, token: str, key_authz: str) -> DnsProof:  # noqa: ARG001
    """The authorization identifier never carries the ``*.`` wildcard prefix."""
    return DnsProof(
        record_name=f"{RECORD_PREFIX}.{normalize_name(identifier)}",
        value=dns01_txt_value(key_authz),
    )


class Dns01Verifier(ProofVerifier):
    """Look up the TXT record and require the expected value among its values."""

    challenge_type: ClassVar[ChallengeType] = ChallengeType.DNS_01

    def __init__(self, resolver: DnsLookup) -> None:
        self._resolver = resolver

    def verify(self, result: ChallengeResult) -> None:
        proof = result.proof
        if not isinstance(proof, DnsProof):
            msg = f"DNS-01 verifier received a {type(proof).__name__} for {result.dns_name}"
            raise TypeError(msg)

        try:
            values = self._resolver.txt_lookup(proof.record_name)
        except ResolverError as exc:
            msg = f"TXT lookup of {proof.record_name} failed: {exc.detail}"
            raise RetriableValidationError(msg, resource=proof.record_name) from exc

        if not values:
            msg = f"{proof.record_name} has no TXT records yet"
            raise RetriableValidationError(msg, resource=proof.record_name)
        if proof.value not in values:
            msg = (
                f"{proof.record_name} does not hold the proof value. "
                f"Expected = {proof.value}, Actual = {','.join(values)}"
            )
            raise RetriableValidationError(msg, resource=proof.record_name)
        log.debug("DNS-01 proof for %s is observable", result.dns_name)
