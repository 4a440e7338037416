"""Issued certificate bundle handed from the finalizer to the deployer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class CertificateBundle:
    """Issued chain plus the exportable PKCS#12 bundle.

    ``pfx`` and ``password`` are transient: :meth:`metadata` is the only
    view of a bundle that may be written to a checkpoint.
    """

    dns_names: tuple[str, ...]
    thumbprint: str
    not_after: datetime
    pem_chain: str
    pfx: bytes = field(repr=False)
    password: str = field(repr=False)

    @property
    def certificate_name(self) -> str:
        """Name under which the hosting layer stores this certificate."""
        return f"{self.dns_names[0].replace('*', 'wildcard')}-{self.thumbprint}"

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.certificate_name,
            "thumbprint": self.thumbprint,
            "not_after": self.not_after.isoformat(),
            "dns_names": list(self.dns_names),
        }
