"""Issuance workflow services.

Public API::

    from acmesites.services import IssuanceContext, IssueRequest, Orchestrator
"""

from acmesites.services.discovery import IssueRequest, RenewalDiscovery
from acmesites.services.orchestrator import IssuanceContext, Orchestrator

__all__ = ["IssuanceContext", "IssueRequest", "Orchestrator", "RenewalDiscovery"]
