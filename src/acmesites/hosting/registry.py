"""Hosting provider registry.

Usage::

    from acmesites.hosting.registry import load_hosting_provider

    hosting = load_hosting_provider(settings)
    sites = hosting.list_sites()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmesites.core.plugins import load_plugin_class
from acmesites.hosting.base import HostingProvider

if TYPE_CHECKING:
    from acmesites.config.settings import AcmeSitesSettings

log = logging.getLogger(__name__)

# Maps config string → (module_path, class_name)
_BUILTIN_PROVIDERS: dict[str, tuple[str, str]] = {
    "appservice": ("acmesites.hosting.appservice", "AppServiceProvider"),
}


def load_hosting_provider(settings: AcmeSitesSettings) -> HostingProvider:
    """Instantiate the provider named by ``hosting.provider``.

    Raises
    ------
    PluginLoadError
        If the provider cannot be loaded.

    """
    cls = load_plugin_class(
        settings.hosting.provider,
        builtins=_BUILTIN_PROVIDERS,
        base=HostingProvider,
        label="hosting provider",
    )
    provider = cls(settings.hosting, settings.environment, settings.secret_store)
    log.info("Loaded hosting provider: %s", settings.hosting.provider)
    return provider
