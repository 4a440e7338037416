"""Abstract DNS provider interface.

A DNS provider exposes the zones the operator manages and lets the
workflow read, replace and delete TXT record sets inside them.  Record
set names are **zone-relative** (``_acme-challenge.www``).

Subclass :class:`DnsProvider` and point ``dns.provider`` at it with
``ext:package.module.ClassName`` to use a provider other than the
built-in ``azure`` one.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmesites.config.settings import DnsSettings, EnvironmentSettings
    from acmesites.models.dns import TxtRecordSet, Zone


class DnsProvider(abc.ABC):
    """Base class for DNS providers.

    Implementations raise :class:`~acmesites.core.errors.DnsProviderError`
    with ``retryable`` set for throttling, 5xx and transport failures.
    """

    def __init__(self, settings: DnsSettings, environment: EnvironmentSettings) -> None:
        self.settings = settings
        self.environment = environment

    @abc.abstractmethod
    def list_zones(self) -> list[Zone]:
        """Return every zone the provider manages, in a stable order."""

    @abc.abstractmethod
    def get_txt_record_set(self, zone: Zone, name: str) -> TxtRecordSet | None:
        """Return the TXT record set *name* in *zone*, or ``None``."""

    @abc.abstractmethod
    def upsert_txt_record_set(self, zone: Zone, record_set: TxtRecordSet) -> None:
        """Create or replace a TXT record set."""

    @abc.abstractmethod
    def delete_txt_record_set(self, zone: Zone, name: str) -> None:
        """Delete a TXT record set; an absent record set is not an error."""
