"""HTTP-01 proofs: derivation and external verification.

The proof file lives at ``.well-known/acme-challenge/<token>`` below
the site content root and contains the key authorization.
"""

from __future__ import annotations

import logging
import ssl
import urllib.error
import urllib.request
from typing import ClassVar

from acmesites.challenge.base import ProofVerifier
from acmesites.core.errors import RetriableValidationError
from acmesites.core.types import ChallengeType
from acmesites.models.challenge import ChallengeResult, HttpProof

log = logging.getLogger(__name__)

WELL_KNOWN_PATH = ".well-known/acme-challenge"
_MAX_BODY_BYTES = 65536


def build_proof(identifier: str, token: str, key_authz: str) -> HttpProof:
    path = f"{WELL_KNOWN_PATH}/{token}"
    return HttpProof(path=path, value=key_authz, url=f"http://{identifier}/{path}")


def _unverified_context() -> ssl.SSLContext:
    # The site may still serve an expired or self-signed certificate.
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


class Http01Verifier(ProofVerifier):
    """Fetch the proof URL and compare the body with the key authorization."""

    challenge_type: ClassVar[ChallengeType] = ChallengeType.HTTP_01

    def __init__(self, timeout: float = 10) -> None:
        self._timeout = timeout

    def verify(self, result: ChallengeResult) -> None:
        proof = result.proof
        if not isinstance(proof, HttpProof):
            msg = f"HTTP-01 verifier received a {type(proof).__name__} for {result.dns_name}"
            raise TypeError(msg)

        req = urllib.request.Request(proof.url, method="GET")
        try:
            with urllib.request.urlopen(  # noqa: S310
                req,
                timeout=self._timeout,
                context=_unverified_context(),
            ) as resp:
                status = resp.status
                body = resp.read(_MAX_BODY_BYTES)
        except urllib.error.HTTPError as exc:
            msg = f"{proof.url} returned HTTP {exc.code}, expected 200"
            raise RetriableValidationError(msg, resource=proof.url) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Could not fetch {proof.url}: {exc}"
            raise RetriableValidationError(msg, resource=proof.url) from exc

        if not 200 <= status < 300:  # noqa: PLR2004
            msg = f"{proof.url} returned HTTP {status}, expected 200"
            raise RetriableValidationError(msg, resource=proof.url)

        actual = body.decode("utf-8", errors="replace").strip()
        if actual != proof.value:
            msg = (
                f"{proof.url} served an unexpected proof. "
                f"Expected = {proof.value}, Actual = {actual[:200]}"
            )
            raise RetriableValidationError(msg, resource=proof.url)
        log.debug("HTTP-01 proof for %s is observable", result.dns_name)
