"""Abstract base class for proof verifiers.

A verifier checks, from outside, that a published proof is observable
the way the CA will observe it.  Verifiers never talk to the CA.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from acmesites.core.types import ChallengeType
    from acmesites.models.challenge import ChallengeResult

log = logging.getLogger(__name__)


class ProofVerifier(abc.ABC):
    """Base class for all proof verifiers.

    Subclasses set :attr:`challenge_type` and implement :meth:`verify`,
    raising :class:`~acmesites.core.errors.RetriableValidationError`
    while the proof is not (yet) visible.
    """

    challenge_type: ClassVar[ChallengeType]

    @abc.abstractmethod
    def verify(self, result: ChallengeResult) -> None:
        """Return normally when the proof of *result* is observable."""
