"""Checkpoint record of one issuance workflow."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from acmesites.core.types import ChallengeType, WorkflowStep
from acmesites.models.acme import Order
from acmesites.models.challenge import ChallengeResult
from acmesites.models.site import DomainSet, Site


def make_workflow_id(site: Site, domain_set: DomainSet) -> str:
    """Deterministic id so a re-run finds the checkpoint of the same request."""
    material = f"{site.key}|{','.join(sorted(domain_set.dns_names))}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:20]


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class WorkflowState:
    """Everything needed to resume a workflow at its next step.

    Contains no private key or PKCS#12 material; ``certificate`` holds
    :meth:`CertificateBundle.metadata` only.
    """

    workflow_id: str
    site: Site
    domain_set: DomainSet
    challenge_type: ChallengeType
    step: WorkflowStep = WorkflowStep.DISCOVER
    order: Order | None = None
    challenge_results: tuple[ChallengeResult, ...] = ()
    restarts: int = 0
    certificate: dict[str, Any] | None = None
    replaces: str | None = None
    error: dict[str, Any] | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @classmethod
    def start(
        cls,
        site: Site,
        domain_set: DomainSet,
        challenge_type: ChallengeType,
        *,
        replaces: str | None = None,
    ) -> WorkflowState:
        return cls(
            workflow_id=make_workflow_id(site, domain_set),
            site=site,
            domain_set=domain_set,
            challenge_type=challenge_type,
            replaces=replaces,
        )

    def advance(self, step: WorkflowStep, **changes: Any) -> WorkflowState:
        """Return a copy moved to *step* with *changes* applied."""
        return replace(self, step=step, updated_at=_now(), **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "site": self.site.to_dict(),
            "dns_names": list(self.domain_set.dns_names),
            "challenge_type": self.challenge_type.value,
            "step": self.step.value,
            "order": self.order.to_dict() if self.order else None,
            "challenge_results": [r.to_dict() for r in self.challenge_results],
            "restarts": self.restarts,
            "certificate": self.certificate,
            "replaces": self.replaces,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowState:
        return cls(
            workflow_id=data["workflow_id"],
            site=Site.from_dict(data["site"]),
            domain_set=DomainSet(tuple(data["dns_names"])),
            challenge_type=ChallengeType(data["challenge_type"]),
            step=WorkflowStep(data["step"]),
            order=Order.from_dict(data["order"]) if data.get("order") else None,
            challenge_results=tuple(
                ChallengeResult.from_dict(r) for r in data.get("challenge_results", ())
            ),
            restarts=data.get("restarts", 0),
            certificate=data.get("certificate"),
            replaces=data.get("replaces"),
            error=data.get("error"),
            created_at=data.get("created_at", _now()),
            updated_at=data.get("updated_at", _now()),
        )
