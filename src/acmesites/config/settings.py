"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from acmesites.config import get_config

    wf = get_config().settings.workflow
    print(wf.max_restarts, wf.poll_interval_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# ACME
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """Certificate authority endpoint and account."""

    directory_url: str
    email: str
    account_key_path: str
    account_key_type: str
    preferred_chain: str | None
    verify_ssl: bool
    timeout_seconds: int


def _build_acme(data: dict | None) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        directory_url=d["directory_url"],
        email=d.get("email", ""),
        account_key_path=d.get("account_key_path", "state/account_key.pem"),
        account_key_type=d.get("account_key_type", "ec-256"),
        preferred_chain=d.get("preferred_chain") or None,
        verify_ssl=d.get("verify_ssl", True),
        timeout_seconds=d.get("timeout_seconds", 30),
    )


# ---------------------------------------------------------------------------
# Secret store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecretStoreSettings:
    """Key-vault style secret store; opaque to the workflow."""

    base_url: str | None


def _build_secret_store(data: dict | None) -> SecretStoreSettings:
    d = data or {}
    return SecretStoreSettings(base_url=d.get("base_url") or None)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnvironmentSettings:
    """Per-cloud endpoints and platform DNS suffixes."""

    name: str
    resource_manager_url: str
    dns_suffixes: tuple[str, ...]


def _build_environment(data: dict | None) -> EnvironmentSettings:
    d = data or {}
    return EnvironmentSettings(
        name=d.get("name", "AzureCloud"),
        resource_manager_url=d.get("resource_manager_url", "https://management.azure.com").rstrip(
            "/"
        ),
        dns_suffixes=tuple(
            d.get("dns_suffixes", ["azurewebsites.net", "trafficmanager.net"]),
        ),
    )


# ---------------------------------------------------------------------------
# DNS
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DnsSettings:
    """DNS provider selection and live resolver settings."""

    provider: str
    config: dict[str, Any]
    resolvers: tuple[str, ...]
    timeout_seconds: float


def _build_dns(data: dict | None) -> DnsSettings:
    d = data or {}
    return DnsSettings(
        provider=d.get("provider", "azure"),
        config=dict(d.get("config") or {}),
        resolvers=tuple(d.get("resolvers", [])),
        timeout_seconds=d.get("timeout_seconds", 10),
    )


# ---------------------------------------------------------------------------
# Hosting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HostingSettings:
    """Hosting control plane selection."""

    provider: str
    config: dict[str, Any]
    issuer_tag: str
    running_sites_only: bool


def _build_hosting(data: dict | None) -> HostingSettings:
    d = data or {}
    return HostingSettings(
        provider=d.get("provider", "appservice"),
        config=dict(d.get("config") or {}),
        issuer_tag=d.get("issuer_tag", "acmesites"),
        running_sites_only=d.get("running_sites_only", True),
    )


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowSettings:
    """Issuance workflow policy: retries, restarts, concurrency, deadlines."""

    challenge_type: str
    key_size: int
    max_restarts: int
    verify_attempts: int
    verify_delay_seconds: float
    poll_attempts: int
    poll_interval_seconds: float
    api_attempts: int
    api_delay_seconds: float
    max_parallel: int
    run_deadline_seconds: float
    renew_before_days: int
    checkpoint_dir: str


def _build_workflow(data: dict | None) -> WorkflowSettings:
    d = data or {}
    return WorkflowSettings(
        challenge_type=d.get("challenge_type", "dns-01"),
        key_size=d.get("key_size", 2048),
        max_restarts=d.get("max_restarts", 1),
        verify_attempts=d.get("verify_attempts", 12),
        verify_delay_seconds=d.get("verify_delay_seconds", 10),
        poll_attempts=d.get("poll_attempts", 12),
        poll_interval_seconds=d.get("poll_interval_seconds", 5),
        api_attempts=d.get("api_attempts", 3),
        api_delay_seconds=d.get("api_delay_seconds", 5),
        max_parallel=d.get("max_parallel", 4),
        run_deadline_seconds=d.get("run_deadline_seconds", 3600),
        renew_before_days=d.get("renew_before_days", 30),
        checkpoint_dir=d.get("checkpoint_dir", "state/workflows"),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HookEntrySettings:
    """A single registered hook."""

    class_path: str
    enabled: bool
    events: tuple[str, ...]
    timeout_seconds: int | None
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HookSettings:
    """Hook executor settings and registered hooks."""

    timeout_seconds: int
    max_workers: int
    max_retries: int
    registered: tuple[HookEntrySettings, ...]


def _build_hooks(data: dict | None) -> HookSettings:
    d = data or {}
    entries = tuple(
        HookEntrySettings(
            class_path=e["class"],
            enabled=e.get("enabled", True),
            events=tuple(e.get("events", [])),
            timeout_seconds=e.get("timeout_seconds"),
            config=dict(e.get("config") or {}),
        )
        for e in d.get("registered", [])
    )
    return HookSettings(
        timeout_seconds=d.get("timeout_seconds", 30),
        max_workers=d.get("max_workers", 2),
        max_retries=d.get("max_retries", 0),
        registered=entries,
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSitesSettings:
    """Root of the typed settings tree."""

    acme: AcmeSettings
    secret_store: SecretStoreSettings
    environment: EnvironmentSettings
    dns: DnsSettings
    hosting: HostingSettings
    workflow: WorkflowSettings
    logging: LoggingSettings
    hooks: HookSettings


def build_settings(data: dict) -> AcmeSitesSettings:
    """Materialise the typed settings tree from validated config data."""
    return AcmeSitesSettings(
        acme=_build_acme(data.get("acme")),
        secret_store=_build_secret_store(data.get("secret_store")),
        environment=_build_environment(data.get("environment")),
        dns=_build_dns(data.get("dns")),
        hosting=_build_hosting(data.get("hosting")),
        workflow=_build_workflow(data.get("workflow")),
        logging=_build_logging(data.get("logging")),
        hooks=_build_hooks(data.get("hooks")),
    )
