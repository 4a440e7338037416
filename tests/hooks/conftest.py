"""Hook-specific fixtures for testing."""

from __future__ import annotations

import time
from typing import Any

import pytest

from acmesites.config.settings import HookEntrySettings, HookSettings
from acmesites.hooks.base import Hook

# ---------------------------------------------------------------------------
# Concrete Hook subclasses for testing
# ---------------------------------------------------------------------------


class DummyHook(Hook):
    """Records every call in ``self.calls``."""

    def __init__(self, config: dict | None = None) -> None:
        super().__init__(config)
        self.calls: list[tuple[str, dict]] = []

    def _record(self, method: str, ctx: dict) -> None:
        self.calls.append((method, ctx))

    def on_order_creation(self, ctx: dict) -> None:
        self._record("on_order_creation", ctx)

    def on_order_restart(self, ctx: dict) -> None:
        self._record("on_order_restart", ctx)

    def on_certificate_issuance(self, ctx: dict) -> None:
        self._record("on_certificate_issuance", ctx)

    def on_certificate_deployment(self, ctx: dict) -> None:
        self._record("on_certificate_deployment", ctx)

    def on_workflow_completed(self, ctx: dict) -> None:
        self._record("on_workflow_completed", ctx)

    def on_workflow_failed(self, ctx: dict) -> None:
        self._record("on_workflow_failed", ctx)


class FailingHook(Hook):
    """Raises RuntimeError on the events a workflow always emits."""

    def __init__(self, config: dict | None = None) -> None:
        super().__init__(config)
        self.attempts = 0

    def on_workflow_completed(self, ctx: dict) -> None:
        self.attempts += 1
        raise RuntimeError("boom")

    def on_workflow_failed(self, ctx: dict) -> None:
        self.attempts += 1
        raise RuntimeError("boom")


class ValidatingHook(Hook):
    """``validate_config`` requires ``required_key`` in config."""

    @classmethod
    def validate_config(cls, config: dict) -> None:
        if "required_key" not in config:
            raise ValueError("missing required_key")


class ContextMutatingHook(Hook):
    """Mutates the received context dict (for isolation tests)."""

    def on_workflow_completed(self, ctx: dict) -> None:
        ctx["mutated_by"] = "ContextMutatingHook"
        ctx["dns_names"].append("injected.example.com")


class SlowHook(Hook):
    """Takes a noticeable time to handle a completed workflow."""

    def on_workflow_completed(self, ctx: dict) -> None:
        time.sleep(0.05)


class NotAHook:
    """Not a Hook subclass, used for TypeError tests."""


# ---------------------------------------------------------------------------
# Helper builders
# ---------------------------------------------------------------------------


HOOKS = "tests.hooks.conftest"


def make_hook_entry(
    class_path: str = f"{HOOKS}.DummyHook",
    enabled: bool = True,
    events: tuple[str, ...] = (),
    timeout_seconds: int | None = None,
    config: dict[str, Any] | None = None,
) -> HookEntrySettings:
    return HookEntrySettings(
        class_path=class_path,
        enabled=enabled,
        events=events,
        timeout_seconds=timeout_seconds,
        config=config or {},
    )


def make_hook_settings(
    timeout_seconds: int = 30,
    max_workers: int = 2,
    max_retries: int = 0,
    registered: tuple[HookEntrySettings, ...] = (),
) -> HookSettings:
    return HookSettings(
        timeout_seconds=timeout_seconds,
        max_workers=max_workers,
        max_retries=max_retries,
        registered=registered,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def registry_with_hooks():
    """Yield a registry factory; every registry built is shut down afterwards."""
    from acmesites.hooks.registry import HookRegistry

    built: list[HookRegistry] = []

    def _factory(
        entries: list[HookEntrySettings] | None = None,
        max_workers: int = 2,
        max_retries: int = 0,
        timeout_seconds: int = 30,
    ) -> HookRegistry:
        if entries is None:
            entries = [make_hook_entry()]
        settings = make_hook_settings(
            timeout_seconds=timeout_seconds,
            max_workers=max_workers,
            max_retries=max_retries,
            registered=tuple(entries),
        )
        registry = HookRegistry(settings)
        built.append(registry)
        return registry

    yield _factory
    for registry in built:
        registry.shutdown(wait=True)
