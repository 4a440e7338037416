"""Error taxonomy for the issuance workflow.

Every failure raised by a workflow component is an
:class:`AcmeSitesError` carrying an :class:`ErrorKind`.  Components
classify errors where they are detected; only the orchestrator decides
whether a kind leads to a retry, a fresh order, or final failure.

Usage::

    raise RetriableValidationError(
        f"{record_name} did not resolve",
        resource=record_name,
    )
"""

from __future__ import annotations

from typing import Any

from acmesites.core.types import ErrorKind


class AcmeSitesError(Exception):
    """Base class for all classified workflow errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    kind:
        Classification used by the orchestrator.
    resource:
        Name of the resource the failure relates to (URL, record name,
        zone, host name).

    """

    default_kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        detail: str,
        *,
        kind: ErrorKind | None = None,
        resource: str | None = None,
    ) -> None:
        self.detail = detail
        self.kind = kind if kind is not None else self.default_kind
        self.resource = resource
        super().__init__(detail)

    @property
    def retryable(self) -> bool:
        """Whether the failure is transient."""
        return self.kind == ErrorKind.RETRIABLE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": type(self).__name__,
            "kind": self.kind.value,
            "detail": self.detail,
        }
        if self.resource:
            data["resource"] = self.resource
        return data


# ---------------------------------------------------------------------------
# Preconditions (fatal, never retried)
# ---------------------------------------------------------------------------


class PreconditionError(AcmeSitesError):
    default_kind = ErrorKind.PRECONDITION


class ZoneNotFoundError(PreconditionError):
    """No managed DNS zone owns one or more names.

    Lists every unmatched name, not only the first.
    """

    def __init__(self, dns_names: list[str]) -> None:
        self.dns_names = list(dns_names)
        super().__init__(
            f"DNS zone(s) are not found. DnsNames = {','.join(self.dns_names)}",
            resource=",".join(self.dns_names),
        )


class DelegationMismatchError(PreconditionError):
    """The live NS records of a zone share no server with the provider's."""

    def __init__(self, zone: str, expected: list[str], actual: list[str]) -> None:
        self.zone = zone
        self.expected = list(expected)
        self.actual = list(actual)
        super().__init__(
            f"The delegated name server is not correct. DNS zone = {zone}, "
            f"Expected = {','.join(self.expected)}, Actual = {','.join(self.actual)}",
            resource=zone,
        )


class ChallengeTypeConflictError(PreconditionError):
    """An authorization does not offer the workflow's challenge type."""


# ---------------------------------------------------------------------------
# Retriable
# ---------------------------------------------------------------------------


class RetriableValidationError(AcmeSitesError):
    """A proof is not yet externally observable."""

    default_kind = ErrorKind.RETRIABLE


class RetriableActivityError(AcmeSitesError):
    """The CA has not reached a terminal order status yet."""

    default_kind = ErrorKind.RETRIABLE


class ResolverError(AcmeSitesError):
    """Transient failure of the live DNS resolver."""

    default_kind = ErrorKind.RETRIABLE


# ---------------------------------------------------------------------------
# Restart-required
# ---------------------------------------------------------------------------


class RestartRequiredError(AcmeSitesError):
    """The order is ``invalid``; the workflow must start over with a new order.

    Parameters
    ----------
    detail:
        Summary message.
    challenge_errors:
        Error payloads of every challenge that ended ``invalid``.

    """

    default_kind = ErrorKind.RESTART

    def __init__(
        self,
        detail: str,
        *,
        challenge_errors: list[dict[str, Any]] | None = None,
        resource: str | None = None,
    ) -> None:
        self.challenge_errors = list(challenge_errors or [])
        super().__init__(detail, resource=resource)


# ---------------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------------


class FinalizeError(AcmeSitesError):
    """Finalization failed; retriable only while the order is processing."""


class DeploymentError(AcmeSitesError):
    """The hosting control plane rejected an import or binding update.

    Parameters
    ----------
    detail:
        Summary message.
    target:
        Request target (method and URL).
    status:
        HTTP status returned by the control plane.
    payload_size:
        Size in bytes of the request payload.

    """

    def __init__(
        self,
        detail: str,
        *,
        target: str,
        status: int | None = None,
        payload_size: int | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        self.target = target
        self.status = status
        self.payload_size = payload_size
        super().__init__(
            f"{detail} (target={target}, status={status}, payload_size={payload_size})",
            kind=kind,
            resource=target,
        )


class WorkflowTimeoutError(AcmeSitesError):
    """The run deadline expired before the workflow completed."""


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class CollaboratorError(AcmeSitesError):
    """Failure reported by an external system.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient (timeouts, 429, 5xx).
    status:
        HTTP status code, when the failure came from an HTTP API.

    """

    def __init__(
        self,
        detail: str,
        *,
        retryable: bool = False,
        status: int | None = None,
        resource: str | None = None,
    ) -> None:
        self.status = status
        super().__init__(
            detail,
            kind=ErrorKind.RETRIABLE if retryable else ErrorKind.FATAL,
            resource=resource,
        )


class AcmeError(CollaboratorError):
    """Error returned by the ACME certificate authority.

    ``problem`` holds the RFC 7807 problem document when one was sent.
    """

    def __init__(
        self,
        detail: str,
        *,
        retryable: bool = False,
        status: int | None = None,
        problem: dict[str, Any] | None = None,
        resource: str | None = None,
    ) -> None:
        self.problem = problem or {}
        super().__init__(detail, retryable=retryable, status=status, resource=resource)

    @property
    def problem_type(self) -> str:
        return self.problem.get("type", "")


class DnsProviderError(CollaboratorError):
    """Error returned by the DNS provider API."""


class HostingError(CollaboratorError):
    """Error returned by the hosting control plane."""


def is_retryable_status(status: int | None) -> bool:
    """Return whether an HTTP status denotes a transient failure."""
    if status is None:
        return True
    return status in (408, 425, 429) or status >= 500  # noqa: PLR2004
