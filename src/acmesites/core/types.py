"""Enumerated types shared across acmesites.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that JSON checkpoints round-trip naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# ACME resources (RFC 8555 §7.1.6)
# ---------------------------------------------------------------------------


class OrderStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"


class AuthorizationStatus(StrEnum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ChallengeStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"


class ChallengeType(StrEnum):
    HTTP_01 = "http-01"
    DNS_01 = "dns-01"


# ---------------------------------------------------------------------------
# Issuance workflow
# ---------------------------------------------------------------------------


class WorkflowStep(StrEnum):
    """Checkpointed steps of one certificate issuance."""

    DISCOVER = "discover"
    ORDER_CREATED = "order_created"
    CHALLENGES_PREPARED = "challenges_prepared"
    CHALLENGES_VERIFIED = "challenges_verified"
    CHALLENGES_ANSWERED = "challenges_answered"
    VALIDATION_POLLED = "validation_polled"
    FINALIZED = "finalized"
    DEPLOYED = "deployed"
    CLEANED_UP = "cleaned_up"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class ErrorKind(StrEnum):
    """How the orchestrator reacts to a classified failure."""

    RETRIABLE = "retriable"
    PRECONDITION = "precondition"
    RESTART = "restart"
    FATAL = "fatal"
