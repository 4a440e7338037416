"""ACME resource projections: orders, authorizations and challenges.

Built from the CA's JSON documents by the ``from_acme`` constructors.
Only :class:`Order` is checkpointed, through :meth:`Order.to_dict`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from acmesites.core.types import AuthorizationStatus, ChallengeStatus, OrderStatus


@dataclass(frozen=True)
class Order:
    url: str
    status: OrderStatus
    authorizations: tuple[str, ...] = ()
    finalize: str = ""
    certificate: str | None = None
    identifiers: tuple[str, ...] = ()
    error: dict | None = None

    @classmethod
    def from_acme(cls, url: str, payload: dict[str, Any]) -> Order:
        return cls(
            url=url,
            status=OrderStatus(payload["status"]),
            authorizations=tuple(payload.get("authorizations", ())),
            finalize=payload.get("finalize", ""),
            certificate=payload.get("certificate"),
            identifiers=tuple(i["value"] for i in payload.get("identifiers", ())),
            error=payload.get("error"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status.value,
            "authorizations": list(self.authorizations),
            "finalize": self.finalize,
            "certificate": self.certificate,
            "identifiers": list(self.identifiers),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Order:
        return cls(
            url=data["url"],
            status=OrderStatus(data["status"]),
            authorizations=tuple(data.get("authorizations", ())),
            finalize=data.get("finalize", ""),
            certificate=data.get("certificate"),
            identifiers=tuple(data.get("identifiers", ())),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class Challenge:
    type: str
    url: str
    status: ChallengeStatus
    token: str = ""
    error: dict | None = None

    @classmethod
    def from_acme(cls, payload: dict[str, Any]) -> Challenge:
        return cls(
            type=payload["type"],
            url=payload["url"],
            status=ChallengeStatus(payload.get("status", "pending")),
            token=payload.get("token", ""),
            error=payload.get("error"),
        )


@dataclass(frozen=True)
class Authorization:
    url: str
    identifier: str
    status: AuthorizationStatus
    wildcard: bool = False
    challenges: tuple[Challenge, ...] = field(default_factory=tuple)

    @classmethod
    def from_acme(cls, url: str, payload: dict[str, Any]) -> Authorization:
        return cls(
            url=url,
            identifier=payload["identifier"]["value"],
            status=AuthorizationStatus(payload["status"]),
            wildcard=bool(payload.get("wildcard", False)),
            challenges=tuple(Challenge.from_acme(c) for c in payload.get("challenges", ())),
        )

    def challenge_of_type(self, challenge_type: str) -> Challenge | None:
        """Return the first offered challenge of *challenge_type*."""
        return next((c for c in self.challenges if c.type == challenge_type), None)
