"""Value objects for the issuance workflow."""

from acmesites.models.acme import Authorization, Challenge, Order
from acmesites.models.certificate import CertificateBundle
from acmesites.models.challenge import ChallengeResult, DnsProof, HttpProof, Proof
from acmesites.models.dns import TxtRecordSet, Zone, normalize_name
from acmesites.models.site import DomainSet, HostedCertificate, Site
from acmesites.models.workflow import WorkflowState, make_workflow_id

__all__ = [
    "Authorization",
    "CertificateBundle",
    "Challenge",
    "ChallengeResult",
    "DnsProof",
    "DomainSet",
    "HostedCertificate",
    "HttpProof",
    "Order",
    "Proof",
    "Site",
    "TxtRecordSet",
    "WorkflowState",
    "Zone",
    "make_workflow_id",
    "normalize_name",
]
