"""Proof verifier registry.

Maps each :class:`ChallengeType` to the :class:`ProofVerifier` that
checks its proofs from outside.

Usage::

    from acmesites.challenge.verifier import ChallengeVerifier

    verifier = ChallengeVerifier.default(resolver)
    verifier.verify(results, ChallengeType.DNS_01)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from acmesites.challenge.dns01 import Dns01Verifier
from acmesites.challenge.http01 import Http01Verifier

if TYPE_CHECKING:
    from acmesites.challenge.base import ProofVerifier
    from acmesites.core.types import ChallengeType
    from acmesites.dns.resolver import DnsLookup
    from acmesites.models.challenge import ChallengeResult

log = logging.getLogger(__name__)


class ChallengeVerifier:
    """Registry of proof verifiers keyed by challenge type."""

    def __init__(self, verifiers: Iterable[ProofVerifier] = ()) -> None:
        self._verifiers: dict[ChallengeType, ProofVerifier] = {}
        for verifier in verifiers:
            self.register(verifier)

    @classmethod
    def default(cls, resolver: DnsLookup, *, http_timeout: float = 10) -> ChallengeVerifier:
        return cls([Http01Verifier(http_timeout), Dns01Verifier(resolver)])

    def register(self, verifier: ProofVerifier) -> None:
        if verifier.challenge_type in self._verifiers:
            log.warning("Replacing verifier for %s", verifier.challenge_type)
        self._verifiers[verifier.challenge_type] = verifier

    def get(self, challenge_type: ChallengeType) -> ProofVerifier:
        try:
            return self._verifiers[challenge_type]
        except KeyError:
            msg = f"No verifier registered for {challenge_type}"
            raise LookupError(msg) from None

    def verify(self, results: Iterable[ChallengeResult], challenge_type: ChallengeType) -> None:
        """Verify every proof; the first unobservable one raises."""
        verifier = self.get(challenge_type)
        for result in results:
            verifier.verify(result)
