"""Issuance workflow state machine.

Defines the valid step transitions of one certificate issuance.  All
transitions are enforced via :func:`assert_transition`.

Usage::

    from acmesites.core.state import WORKFLOW_TRANSITIONS, assert_transition
    from acmesites.core.types import WorkflowStep

    assert_transition(
        WorkflowStep.DISCOVER, WorkflowStep.ORDER_CREATED,
        WORKFLOW_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging

from acmesites.core.types import WorkflowStep

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# discover → order_created → challenges_prepared → challenges_verified →
# challenges_answered → validation_polled → finalized → deployed →
# cleaned_up → completed.  challenges_prepared to challenges_answered →
# order_created when the order went invalid; validation_polled/finalized →
# order_created when key material was lost in a crash.  Any non-terminal
# step may fail.
# ---------------------------------------------------------------------------

_S = WorkflowStep

WORKFLOW_TRANSITIONS: dict[WorkflowStep, frozenset[WorkflowStep]] = {
    _S.DISCOVER: frozenset({_S.ORDER_CREATED, _S.FAILED}),
    _S.ORDER_CREATED: frozenset({_S.CHALLENGES_PREPARED, _S.ORDER_CREATED, _S.FAILED}),
    _S.CHALLENGES_PREPARED: frozenset({_S.CHALLENGES_VERIFIED, _S.ORDER_CREATED, _S.FAILED}),
    _S.CHALLENGES_VERIFIED: frozenset(
        {_S.CHALLENGES_ANSWERED, _S.ORDER_CREATED, _S.FAILED},
    ),
    _S.CHALLENGES_ANSWERED: frozenset(
        {_S.VALIDATION_POLLED, _S.ORDER_CREATED, _S.FAILED},
    ),
    _S.VALIDATION_POLLED: frozenset({_S.FINALIZED, _S.ORDER_CREATED, _S.FAILED}),
    _S.FINALIZED: frozenset({_S.DEPLOYED, _S.ORDER_CREATED, _S.FAILED}),
    _S.DEPLOYED: frozenset({_S.CLEANED_UP, _S.FAILED}),
    _S.CLEANED_UP: frozenset({_S.COMPLETED, _S.FAILED}),
    _S.COMPLETED: frozenset(),
    _S.FAILED: frozenset(),
}

TERMINAL_STEPS: frozenset[WorkflowStep] = frozenset({_S.COMPLETED, _S.FAILED})


def assert_transition(
    current: WorkflowStep,
    target: WorkflowStep,
    table: dict[WorkflowStep, frozenset[WorkflowStep]] = WORKFLOW_TRANSITIONS,
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed."""
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown step {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(
            msg,
        )


def log_transition(
    workflow_id: str,
    from_step: WorkflowStep,
    to_step: WorkflowStep,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a workflow step transition."""
    extra = {
        "event": "state_transition",
        "workflow_id": workflow_id,
        "from_step": from_step.value,
        "to_step": to_step.value,
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "workflow %s: %s -> %s%s",
        workflow_id,
        from_step.value,
        to_step.value,
        f" ({reason})" if reason else "",
        extra=extra,
    )
