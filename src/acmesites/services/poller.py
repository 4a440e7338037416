"""Check whether the CA has finished validating an order."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmesites.core.errors import RestartRequiredError, RetriableActivityError
from acmesites.core.types import ChallengeStatus, OrderStatus

if TYPE_CHECKING:
    from acmesites.acme.client import AcmeClient
    from acmesites.models.acme import Order
    from acmesites.models.challenge import ChallengeResult

log = logging.getLogger(__name__)


class ValidationPoller:
    """One non-blocking status check per call; the caller owns the retry loop."""

    def __init__(self, acme: AcmeClient) -> None:
        self._acme = acme

    def check(self, order: Order, results: tuple[ChallengeResult, ...] = ()) -> Order:
        """Return the refreshed order once it is ``ready`` or ``valid``.

        Raises
        ------
        RetriableActivityError
            While the order is ``pending`` or ``processing``.
        RestartRequiredError
            When the order is ``invalid``; carries every failed
            challenge's error document.

        """
        current = self._acme.get_order(order.url)

        if current.status in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            msg = f"Order {order.url} is {current.status}"
            raise RetriableActivityError(msg, resource=order.url)

        if current.status == OrderStatus.INVALID:
            errors = self._challenge_errors(current, results)
            detail = "; ".join(
                f"{e.get('identifier', '?')}: {e.get('detail') or e.get('type', 'unknown')}"
                for e in errors
            ) or (current.error or {}).get("detail", "no challenge error reported")
            msg = f"Order {order.url} is invalid. {detail}"
            raise RestartRequiredError(msg, challenge_errors=errors, resource=order.url)

        log.info("Order %s is %s", order.url, current.status)
        return current

    def _challenge_errors(
        self,
        order: Order,
        results: tuple[ChallengeResult, ...],
    ) -> list[dict]:
        urls = [(r.url, r.dns_name) for r in results]
        if not urls:
            for authz_url in order.authorizations:
                authz = self._acme.get_authorization(authz_url)
                urls.extend((c.url, authz.identifier) for c in authz.challenges)

        errors = []
        for url, identifier in urls:
            challenge = self._acme.get_challenge(url)
            if challenge.status != ChallengeStatus.INVALID:
                continue
            error = dict(challenge.error or {})
            error.setdefault("identifier", identifier)
            log.error(
                "Challenge %s for %s is invalid: %s",
                url,
                identifier,
                error.get("detail") or error.get("type"),
            )
            errors.append(error)
        return errors
