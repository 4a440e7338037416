"""Configuration subsystem for acmesites.

Public API::

    from acmesites.config import get_config, AcmeSitesConfig

    # At startup (CLI only):
    AcmeSitesConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    attempts = cfg.settings.workflow.poll_attempts   # typed access
    sub = cfg.get("dns.config.subscription_id")      # dynamic dot-path
"""

from acmesites.config.acmesites_config import (
    AcmeSitesConfig,
    ConfigValidationError,
    get_config,
)
from acmesites.config.settings import (
    AcmeSettings,
    AcmeSitesSettings,
    DnsSettings,
    EnvironmentSettings,
    HookEntrySettings,
    HookSettings,
    HostingSettings,
    LoggingSettings,
    SecretStoreSettings,
    WorkflowSettings,
    build_settings,
)

__all__ = [
    "AcmeSettings",
    "AcmeSitesConfig",
    "AcmeSitesSettings",
    "ConfigValidationError",
    "DnsSettings",
    "EnvironmentSettings",
    "HookEntrySettings",
    "HookSettings",
    "HostingSettings",
    "LoggingSettings",
    "SecretStoreSettings",
    "WorkflowSettings",
    "build_settings",
    "get_config",
]
