"""Workflow hooks subsystem.

Public API::

    from acmesites.hooks import Hook, HookRegistry, KNOWN_EVENTS

    class MyHook(Hook):
        def on_workflow_completed(self, ctx: dict) -> None:
            ...
"""

from acmesites.hooks.base import Hook
from acmesites.hooks.events import KNOWN_EVENTS
from acmesites.hooks.registry import HookRegistry

__all__ = ["KNOWN_EVENTS", "Hook", "HookRegistry"]
