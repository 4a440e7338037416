"""Workflow notifications.

Hooks named in the ``hooks`` section are loaded once per run and told
about workflow milestones through :meth:`HookRegistry.notify`.  Every
delivery runs on a small thread pool, so a slow or broken receiver
never holds up issuance.  A failing hook is retried ``max_retries``
times and then logged; nothing is raised back into the workflow.

Usage::

    registry = HookRegistry(settings.hooks)
    registry.notify("workflow.completed", state, thumbprint=thumbprint)
    registry.shutdown()
"""

from __future__ import annotations

import copy
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from acmesites.core.plugins import load_plugin_class
from acmesites.hooks.base import Hook
from acmesites.hooks.events import EVENT_METHOD_MAP, KNOWN_EVENTS

if TYPE_CHECKING:
    from acmesites.config.settings import HookEntrySettings, HookSettings
    from acmesites.models.workflow import WorkflowState

log = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = 0.5


def event_context(state: WorkflowState, **details: Any) -> dict[str, Any]:  # noqa: ANN401
    """Context handed to hooks: the workflow's identity plus *details*."""
    return {
        "workflow_id": state.workflow_id,
        "site": state.site.key,
        "slot": state.site.slot,
        "dns_names": list(state.domain_set.dns_names),
        **details,
    }


@dataclass(frozen=True)
class _Subscription:
    hook: Hook
    name: str
    events: frozenset[str]
    slow_after: float


class HookRegistry:
    """Loaded hooks and the pool that delivers their notifications.

    Parameters
    ----------
    settings:
        The ``hooks`` section from :class:`AcmeSitesSettings`.

    Raises
    ------
    PluginLoadError
        If a configured hook class cannot be imported or is not a hook.
    ValueError
        If a hook rejects its configuration or names an unknown event.

    """

    def __init__(self, settings: HookSettings) -> None:
        self._settings = settings
        self._subscriptions: list[_Subscription] = []
        for entry in settings.registered:
            if not entry.enabled:
                log.debug("Hook '%s' is disabled, skipping", entry.class_path)
                continue
            try:
                self._subscriptions.append(self._subscribe(entry))
            except Exception:
                log.critical(
                    "Failed to load hook '%s', refusing to start",
                    entry.class_path,
                    exc_info=True,
                )
                raise

        self._executor: ThreadPoolExecutor | None = None
        if self._subscriptions:
            self._executor = ThreadPoolExecutor(
                max_workers=settings.max_workers,
                thread_name_prefix="acmesites-hook",
            )
            log.info("Loaded %d hook(s)", len(self._subscriptions))

    @property
    def hooks(self) -> list[Hook]:
        return [s.hook for s in self._subscriptions]

    def _subscribe(self, entry: HookEntrySettings) -> _Subscription:
        cls = load_plugin_class(
            f"ext:{entry.class_path}",
            builtins={},
            base=Hook,
            label="hook",
        )
        cls.validate_config(entry.config)

        unknown = frozenset(entry.events) - KNOWN_EVENTS
        if unknown:
            msg = (
                f"Hook '{entry.class_path}' subscribes to unknown events "
                f"{sorted(unknown)}; known events: {sorted(KNOWN_EVENTS)}"
            )
            raise ValueError(msg)

        events = frozenset(entry.events) or KNOWN_EVENTS
        timeout = entry.timeout_seconds
        log.info(
            "Loaded hook %s (events=%s)",
            entry.class_path,
            "all" if events == KNOWN_EVENTS else sorted(events),
        )
        return _Subscription(
            hook=cls(config=entry.config),
            name=entry.class_path,
            events=events,
            slow_after=timeout if timeout is not None else self._settings.timeout_seconds,
        )

    def notify(self, event: str, state: WorkflowState, **details: Any) -> None:  # noqa: ANN401
        """Queue *event* for every hook subscribed to it.

        Each hook gets its own copy of the context, so a hook that edits
        it cannot affect another hook or the workflow.
        """
        method_name = EVENT_METHOD_MAP.get(event)
        if method_name is None:
            msg = f"Unknown hook event '{event}'; known events: {sorted(KNOWN_EVENTS)}"
            raise ValueError(msg)
        if self._executor is None:
            return

        context = event_context(state, **details)
        for sub in self._subscriptions:
            if event in sub.events:
                self._executor.submit(
                    self._deliver,
                    sub,
                    event,
                    method_name,
                    copy.deepcopy(context),
                )

    def _deliver(
        self,
        sub: _Subscription,
        event: str,
        method_name: str,
        context: dict[str, Any],
    ) -> bool:
        extra = {"workflow_id": context["workflow_id"], "hook": sub.name, "event": event}
        attempts = self._settings.max_retries + 1
        start = time.monotonic()
        for attempt in range(1, attempts + 1):
            try:
                getattr(sub.hook, method_name)(context)
            except Exception:
                log.warning(
                    "Hook '%s' failed on %s (attempt %d/%d)",
                    sub.name,
                    event,
                    attempt,
                    attempts,
                    exc_info=True,
                    extra=extra,
                )
                if attempt < attempts:
                    time.sleep(RETRY_BACKOFF_SECONDS * 2 ** (attempt - 1))
                continue

            elapsed = time.monotonic() - start
            if elapsed > sub.slow_after:
                log.warning(
                    "Hook '%s' took %.1fs on %s (limit %ss)",
                    sub.name,
                    elapsed,
                    event,
                    sub.slow_after,
                    extra=extra,
                )
            return True

        log.error(
            "Hook '%s' gave up on %s for workflow %s",
            sub.name,
            event,
            context["workflow_id"],
            extra=extra,
        )
        return False

    def shutdown(self, wait: bool = True) -> None:  # noqa: FBT001, FBT002
        """Stop accepting notifications and, with *wait*, drain the queue."""
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
            log.debug("Hook pool shut down")
