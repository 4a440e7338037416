"""Hosting control plane: sites, bindings and the certificate store."""

from acmesites.hosting.base import SNI_ENABLED, HostingProvider
from acmesites.hosting.registry import load_hosting_provider

__all__ = ["SNI_ENABLED", "HostingProvider", "load_hosting_provider"]
