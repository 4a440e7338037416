"""Result-style step outcomes.

Workflow components raise classified :class:`AcmeSitesError` subclasses.
The orchestrator runs every step through :func:`capture`, which turns the
call into a :class:`StepOutcome`; its transition function then decides
between retry, restart and failure by looking at :attr:`StepOutcome.kind`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from acmesites.core.errors import AcmeSitesError
from acmesites.core.types import ErrorKind

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StepOutcome(Generic[T]):
    """Either a value or a classified error, never both."""

    value: T | None = None
    error: AcmeSitesError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> StepOutcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: AcmeSitesError) -> StepOutcome[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        """Classification of the failure, ``None`` on success."""
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> StepOutcome[T]:
    """Call *fn* and wrap its result or classified failure.

    Unclassified exceptions are treated as fatal so that programming
    errors surface instead of being retried.
    """
    try:
        return StepOutcome.success(fn(*args, **kwargs))
    except AcmeSitesError as exc:
        return StepOutcome.failure(exc)
    except Exception as exc:
        log.exception("Unclassified error in %s", getattr(fn, "__qualname__", fn))
        wrapped = AcmeSitesError(
            f"Unexpected {type(exc).__name__}: {exc}",
            kind=ErrorKind.FATAL,
        )
        wrapped.__cause__ = exc
        return StepOutcome.failure(wrapped)
