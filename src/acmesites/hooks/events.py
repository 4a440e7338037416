"""Canonical hook event definitions.

Single source of truth for all known workflow event names and their
corresponding :class:`~acmesites.hooks.base.Hook` method names.

This module has **zero** internal dependencies, so it can be imported
from anywhere without circular import risk.
"""

from __future__ import annotations

EVENT_METHOD_MAP: dict[str, str] = {
    "order.creation": "on_order_creation",
    "order.restart": "on_order_restart",
    "certificate.issuance": "on_certificate_issuance",
    "certificate.deployment": "on_certificate_deployment",
    "workflow.completed": "on_workflow_completed",
    "workflow.failed": "on_workflow_failed",
}

KNOWN_EVENTS: frozenset[str] = frozenset(EVENT_METHOD_MAP.keys())
