"""Fixed-delay retry envelope and the run deadline.

Waiting always goes through :meth:`Deadline.wait`, a
:meth:`threading.Event.wait` bounded by the time left in the run, so a
cancelled or expired run stops every polling loop promptly.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from acmesites.core.errors import WorkflowTimeoutError
from acmesites.core.outcome import StepOutcome, capture
from acmesites.core.types import ErrorKind

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int
    delay: float


class Deadline:
    """Absolute end of a run, shared read-only by every workflow in it.

    Parameters
    ----------
    seconds:
        Time budget from now; ``None`` means unbounded.

    """

    def __init__(self, seconds: float | None = None) -> None:
        self._expires = None if seconds is None else time.monotonic() + seconds
        self._cancelled = threading.Event()

    def remaining(self) -> float | None:
        if self._expires is None:
            return None
        return max(self._expires - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        return self._cancelled.is_set() or self.remaining() == 0.0

    def cancel(self) -> None:
        """Abort every wait on this deadline."""
        self._cancelled.set()

    def check(self, label: str = "run") -> None:
        if self.expired:
            msg = f"Run deadline reached during {label}"
            raise WorkflowTimeoutError(msg)

    def wait(self, seconds: float, label: str = "run") -> None:
        """Sleep *seconds*, raising :class:`WorkflowTimeoutError` if the run ends first."""
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._cancelled.wait(timeout)
        self.check(label)


def run_with_retry(
    fn: Callable[..., T],
    *args: Any,
    policy: RetryPolicy,
    deadline: Deadline,
    label: str,
    **kwargs: Any,
) -> StepOutcome[T]:
    """Call *fn* until it succeeds or fails with a non-retriable kind.

    A retriable failure on the last attempt is returned as is; the
    caller treats exhausted retries like any other failure.
    """
    outcome: StepOutcome[T] = StepOutcome.failure(
        WorkflowTimeoutError(f"Run deadline reached before {label}"),
    )
    for attempt in range(1, policy.attempts + 1):
        if deadline.expired:
            return StepOutcome.failure(WorkflowTimeoutError(f"Run deadline reached during {label}"))

        outcome = capture(fn, *args, **kwargs)
        if outcome.kind != ErrorKind.RETRIABLE:
            return outcome
        if attempt == policy.attempts:
            break

        log.info(
            "%s not done (attempt %d/%d): %s",
            label,
            attempt,
            policy.attempts,
            outcome.error.detail if outcome.error else "",
        )
        try:
            deadline.wait(policy.delay, label)
        except WorkflowTimeoutError as exc:
            return StepOutcome.failure(exc)

    log.warning("%s gave up after %d attempt(s)", label, policy.attempts)
    return outcome
