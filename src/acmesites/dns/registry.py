"""DNS provider registry.

Usage::

    from acmesites.dns.registry import load_dns_provider

    provider = load_dns_provider(settings.dns, settings.environment)
    zones = provider.list_zones()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmesites.core.plugins import load_plugin_class
from acmesites.dns.provider import DnsProvider

if TYPE_CHECKING:
    from acmesites.config.settings import DnsSettings, EnvironmentSettings

log = logging.getLogger(__name__)

# Maps config string → (module_path, class_name)
_BUILTIN_PROVIDERS: dict[str, tuple[str, str]] = {
    "azure": ("acmesites.dns.azure", "AzureDnsProvider"),
}


def load_dns_provider(settings: DnsSettings, environment: EnvironmentSettings) -> DnsProvider:
    """Instantiate the DNS provider named by ``dns.provider``.

    Raises
    ------
    PluginLoadError
        If the provider cannot be loaded.

    """
    cls = load_plugin_class(
        settings.provider,
        builtins=_BUILTIN_PROVIDERS,
        base=DnsProvider,
        label="DNS provider",
    )
    provider = cls(settings, environment)
    log.info("Loaded DNS provider: %s", settings.provider)
    return provider
