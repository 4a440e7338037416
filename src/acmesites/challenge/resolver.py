"""Turn an order's authorizations into challenge proofs.

Exactly one challenge type serves a whole order.  Authorizations the
CA already considers ``valid`` (reused from an earlier order) need no
proof and are skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from acmesites.challenge import dns01, http01
from acmesites.core.errors import ChallengeTypeConflictError
from acmesites.core.types import AuthorizationStatus, ChallengeType
from acmesites.models.challenge import ChallengeResult, HttpProof, Proof

if TYPE_CHECKING:
    from acmesites.acme.client import AcmeClient
    from acmesites.hosting.base import HostingProvider
    from acmesites.models.acme import Order
    from acmesites.models.site import Site

log = logging.getLogger(__name__)

_PROOF_BUILDERS: dict[ChallengeType, Callable[[str, str, str], Proof]] = {
    ChallengeType.HTTP_01: http01.build_proof,
    ChallengeType.DNS_01: dns01.build_proof,
}


class ChallengeResolver:
    """Select challenges and derive their proofs.

    Parameters
    ----------
    acme:
        CA client; supplies authorizations and the account thumbprint.
    hosting:
        Control plane used to publish HTTP-01 proof files.

    """

    def __init__(self, acme: AcmeClient, hosting: HostingProvider) -> None:
        self._acme = acme
        self._hosting = hosting

    def resolve(
        self,
        order: Order,
        challenge_type: ChallengeType,
        site: Site,
    ) -> list[ChallengeResult]:
        """Return one :class:`ChallengeResult` per authorization still pending.

        For HTTP-01 the proof files are written to *site* before returning.

        Raises
        ------
        ChallengeTypeConflictError
            If an authorization does not offer *challenge_type*.

        """
        build = _PROOF_BUILDERS[challenge_type]
        results: list[ChallengeResult] = []
        for authz_url in order.authorizations:
            authz = self._acme.get_authorization(authz_url)
            if authz.status == AuthorizationStatus.VALID:
                log.info("Authorization for %s is already valid", authz.identifier)
                continue

            challenge = authz.challenge_of_type(challenge_type)
            if challenge is None:
                offered = ",".join(c.type for c in authz.challenges) or "(none)"
                msg = (
                    f"Authorization for {authz.identifier} does not offer {challenge_type}. "
                    f"Offered = {offered}"
                )
                raise ChallengeTypeConflictError(msg, resource=authz_url)

            key_authz = self._acme.key_authorization(challenge.token)
            results.append(
                ChallengeResult(
                    url=challenge.url,
                    dns_name=authz.identifier,
                    proof=build(authz.identifier, challenge.token, key_authz),
                ),
            )

        for result in results:
            if isinstance(result.proof, HttpProof):
                self._hosting.write_file(site, result.proof.path, result.proof.value)
        log.info("Prepared %d %s proof(s) for order %s", len(results), challenge_type, order.url)
        return results
