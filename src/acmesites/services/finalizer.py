"""Finalize a ready order and package the issued certificate.

The hosting layer only accepts RSA keys, so the certificate key is
always RSA whatever the CA prefers.  The PKCS#12 export uses the legacy
3DES/SHA-1 PBES so older certificate stores can import it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from acmesites.core.errors import FinalizeError
from acmesites.core.types import ErrorKind, OrderStatus
from acmesites.models.certificate import CertificateBundle
from acmesites.services.retry import RetryPolicy, run_with_retry

if TYPE_CHECKING:
    from acmesites.acme.client import AcmeClient
    from acmesites.models.acme import Order
    from acmesites.services.retry import Deadline

log = logging.getLogger(__name__)

TRANSPORT_PASSWORD = "P@ssw0rd"


def build_csr(key: rsa.RSAPrivateKey, dns_names: tuple[str, ...]) -> bytes:
    """DER CSR with CN set to the first name and every name as a SAN."""
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, dns_names[0])]))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_names]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return csr.public_bytes(serialization.Encoding.DER)


def thumbprint_of(cert: x509.Certificate) -> str:
    return cert.fingerprint(hashes.SHA1()).hex().upper()  # noqa: S303


def export_pfx(
    key: rsa.RSAPrivateKey,
    certs: list[x509.Certificate],
    password: str,
) -> bytes:
    """PKCS#12 bundle of the leaf, its key and the issuing chain."""
    encryption = (
        serialization.PrivateFormat.PKCS12.encryption_builder()
        .kdf_rounds(2048)
        .key_cert_algorithm(pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC)
        .hmac_hash(hashes.SHA1())  # noqa: S303
        .build(password.encode("utf-8"))
    )
    return pkcs12.serialize_key_and_certificates(
        name=None,
        key=key,
        cert=certs[0],
        cas=certs[1:] or None,
        encryption_algorithm=encryption,
    )


class CertificateFinalizer:
    """Submit the CSR, wait for issuance and build a :class:`CertificateBundle`.

    Parameters
    ----------
    acme:
        CA client.
    key_size:
        RSA modulus size of the certificate key.
    preferred_chain:
        Issuer common name of the preferred chain, or ``None``.
    poll:
        Retry policy while the order is ``processing``.

    """

    def __init__(
        self,
        acme: AcmeClient,
        *,
        key_size: int = 2048,
        preferred_chain: str | None = None,
        poll: RetryPolicy,
    ) -> None:
        self._acme = acme
        self._key_size = key_size
        self._preferred_chain = preferred_chain
        self._poll = poll

    def finalize(
        self,
        order: Order,
        dns_names: tuple[str, ...],
        deadline: Deadline,
    ) -> CertificateBundle:
        """Submit a CSR for a ready *order* and collect the issued certificate."""
        key = self.new_key()
        order = self.submit(order, key, dns_names)
        return self.collect(order, key, dns_names, deadline)

    def new_key(self) -> rsa.RSAPrivateKey:
        return rsa.generate_private_key(public_exponent=65537, key_size=self._key_size)

    def submit(
        self,
        order: Order,
        key: rsa.RSAPrivateKey,
        dns_names: tuple[str, ...],
    ) -> Order:
        """Send the CSR for *key*; the CA may answer before issuance completes."""
        if order.status != OrderStatus.READY:
            msg = f"Order {order.url} is {order.status}, expected {OrderStatus.READY}"
            raise FinalizeError(msg, resource=order.url)
        return self._acme.finalize(order, build_csr(key, dns_names))

    def collect(
        self,
        order: Order,
        key: rsa.RSAPrivateKey,
        dns_names: tuple[str, ...],
        deadline: Deadline,
    ) -> CertificateBundle:
        """Wait until *order* is valid, then download and package its certificate.

        Safe to call again after a failure: it only reads from the CA.
        """
        if order.status != OrderStatus.VALID:
            order = run_with_retry(
                self._check_issued,
                order,
                policy=self._poll,
                deadline=deadline,
                label=f"finalize {order.url}",
            ).unwrap()

        if not order.certificate:
            msg = f"Order {order.url} is valid but has no certificate URL"
            raise FinalizeError(msg, resource=order.url)

        pem_chain = self._acme.download_certificate(order.certificate, self._preferred_chain)
        certs = x509.load_pem_x509_certificates(pem_chain.encode("ascii"))
        leaf = certs[0]
        bundle = CertificateBundle(
            dns_names=tuple(dns_names),
            thumbprint=thumbprint_of(leaf),
            not_after=leaf.not_valid_after_utc,
            pem_chain=pem_chain,
            pfx=export_pfx(key, certs, TRANSPORT_PASSWORD),
            password=TRANSPORT_PASSWORD,
        )
        log.info(
            "Issued certificate %s for %s, expires %s",
            bundle.thumbprint,
            ",".join(dns_names),
            bundle.not_after.isoformat(),
        )
        return bundle

    def _check_issued(self, order: Order) -> Order:
        current = self._acme.get_order(order.url)
        if current.status == OrderStatus.VALID:
            return current
        if current.status == OrderStatus.PROCESSING:
            msg = f"Order {order.url} is still processing"
            raise FinalizeError(msg, kind=ErrorKind.RETRIABLE, resource=order.url)
        msg = f"Order {order.url} ended {current.status} during finalization"
        raise FinalizeError(msg, resource=order.url)
