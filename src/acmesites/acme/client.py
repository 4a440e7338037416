"""Minimal RFC 8555 client used by the issuance workflow.

Speaks JWS-signed JSON to the CA over :mod:`urllib.request`.  Every
method maps one protocol round trip so the orchestrator can checkpoint
between them; no method blocks waiting for a status change.

Failure handling
----------------
HTTP and transport failures surface as :class:`AcmeError` whose
``retryable`` flag follows :func:`is_retryable_status`.  A
``badNonce`` rejection is retried once with a fresh nonce before
it is reported.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import ssl
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from acmesites import __version__
from acmesites.core.errors import AcmeError, is_retryable_status
from acmesites.core.jws import (
    AccountKey,
    b64url_encode,
    compute_thumbprint,
    key_authorization,
    public_jwk,
    sign_request,
)
from acmesites.models.acme import Authorization, Challenge, Order

if TYPE_CHECKING:
    from acmesites.config.settings import AcmeSettings

log = logging.getLogger(__name__)

BAD_NONCE = "urn:ietf:params:acme:error:badNonce"
_PEM_CHAIN = "application/pem-certificate-chain"
_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?([^",;]+)"?')


@dataclass(frozen=True)
class AcmeResponse:
    """Status, lower-cased headers and raw body of one CA response."""

    status: int
    headers: dict[str, str]
    links: tuple[str, ...]
    body: bytes

    @classmethod
    def build(cls, status: int, headers: Any, body: bytes) -> AcmeResponse:  # noqa: ANN401
        items = list(headers.items()) if headers is not None else []
        return cls(
            status=status,
            headers={k.lower(): v for k, v in items},
            links=tuple(v for k, v in items if k.lower() == "link"),
            body=body,
        )

    def json(self) -> dict[str, Any]:
        return json.loads(self.body.decode("utf-8")) if self.body else {}

    @property
    def location(self) -> str | None:
        return self.headers.get("location")

    def link_targets(self, rel: str) -> list[str]:
        """Return every ``Link`` target with relation *rel*."""
        targets = []
        for value in self.links:
            targets.extend(url for url, r in _LINK_RE.findall(value) if r == rel)
        return targets


def _generate_account_key(key_type: str) -> AccountKey:
    algo, _, size = key_type.partition("-")
    if algo == "rsa":
        return rsa.generate_private_key(public_exponent=65537, key_size=int(size))
    curve = {"256": ec.SECP256R1(), "384": ec.SECP384R1()}.get(size)
    if algo != "ec" or curve is None:
        msg = f"Unsupported account key type '{key_type}'"
        raise ValueError(msg)
    return ec.generate_private_key(curve)


def load_or_create_account_key(path: str | Path, key_type: str = "ec-256") -> AccountKey:
    """Load the PEM account key at *path*, generating it on first use."""
    path = Path(path).expanduser()
    if path.is_file():
        log.debug("Using existing account key %s", path)
        key = serialization.load_pem_private_key(path.read_bytes(), password=None)
        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            msg = f"Account key at {path} is neither RSA nor EC"
            raise ValueError(msg)
        return key

    log.info("Generating new %s account key at %s", key_type, path)
    key = _generate_account_key(key_type)
    pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fp:
        fp.write(pem)
    return key


def chain_issuer_name(pem_chain: str) -> str:
    """Common name of the issuer of the top-most certificate in *pem_chain*."""
    certs = x509.load_pem_x509_certificates(pem_chain.encode("ascii"))
    attrs = certs[-1].issuer.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attrs[0].value) if attrs else ""


class AcmeClient:
    """Thread-safe client bound to one CA directory and one account.

    Parameters
    ----------
    settings:
        The ``acme`` configuration section.
    account_key:
        Account key to use instead of ``settings.account_key_path``.

    """

    def __init__(
        self,
        settings: AcmeSettings,
        *,
        account_key: AccountKey | None = None,
    ) -> None:
        self._settings = settings
        self._key = account_key
        self._directory: dict[str, Any] | None = None
        self._kid: str | None = None
        self._nonces: list[str] = []
        self._lock = threading.Lock()
        self._account_lock = threading.RLock()
        self._ssl_ctx: ssl.SSLContext | None = None

    # -- account ------------------------------------------------------------

    @property
    def account_key(self) -> AccountKey:
        if self._key is None:
            with self._account_lock:
                if self._key is None:
                    self._key = load_or_create_account_key(
                        self._settings.account_key_path,
                        self._settings.account_key_type,
                    )
        return self._key

    @property
    def thumbprint(self) -> str:
        """RFC 7638 thumbprint of the account key."""
        return compute_thumbprint(public_jwk(self.account_key))

    def key_authorization(self, token: str) -> str:
        return key_authorization(token, self.thumbprint)

    def directory(self) -> dict[str, Any]:
        if self._directory is None:
            resp = self._send(self._request(self._settings.directory_url, method="GET"))
            if resp.status != 200:  # noqa: PLR2004
                raise self._error(resp, self._settings.directory_url, "fetching directory")
            self._directory = resp.json()
        return self._directory

    def register(self) -> str:
        """Create or look up the account; return its key id (``kid``).

        Concurrent workflows share one client, so the first caller registers
        while the others wait for its ``kid``.
        """
        if self._kid is not None:
            return self._kid
        with self._account_lock:
            if self._kid is not None:
                return self._kid
            return self._register()

    def _register(self) -> str:
        payload: dict[str, Any] = {"termsOfServiceAgreed": True}
        if self._settings.email:
            payload["contact"] = [f"mailto:{self._settings.email}"]
        resp = self._post(self.directory()["newAccount"], payload, use_kid=False)
        if not resp.location:
            msg = "ACME server did not return an account URL"
            raise AcmeError(msg, resource=self.directory()["newAccount"])
        self._kid = resp.location
        log.info(
            "ACME account %s (%s)",
            resp.location,
            "created" if resp.status == 201 else "existing",  # noqa: PLR2004
        )
        return resp.location

    # -- orders -------------------------------------------------------------

    def new_order(self, dns_names: list[str] | tuple[str, ...]) -> Order:
        payload = {"identifiers": [{"type": "dns", "value": name} for name in dns_names]}
        resp = self._post(self.directory()["newOrder"], payload)
        if not resp.location:
            msg = "ACME server did not return an order URL"
            raise AcmeError(msg, resource=self.directory()["newOrder"])
        order = Order.from_acme(resp.location, resp.json())
        log.info(
            "Created order %s for %s (status=%s)",
            order.url,
            ",".join(dns_names),
            order.status,
        )
        return order

    def get_order(self, url: str) -> Order:
        return Order.from_acme(url, self._post(url, None).json())

    def get_authorization(self, url: str) -> Authorization:
        return Authorization.from_acme(url, self._post(url, None).json())

    def get_challenge(self, url: str) -> Challenge:
        return Challenge.from_acme(self._post(url, None).json())

    def answer_challenge(self, url: str) -> Challenge:
        """Tell the CA the proof for the challenge at *url* is in place."""
        return Challenge.from_acme(self._post(url, {}).json())

    def finalize(self, order: Order, csr_der: bytes) -> Order:
        resp = self._post(order.finalize, {"csr": b64url_encode(csr_der)})
        return Order.from_acme(order.url, resp.json())

    def download_certificate(self, url: str, preferred_chain: str | None = None) -> str:
        """Download the PEM chain, honouring *preferred_chain* by issuer name.

        Falls back to the default chain when no alternate matches.
        """
        resp = self._post(url, None, accept=_PEM_CHAIN)
        default = resp.body.decode("ascii")
        if not preferred_chain or chain_issuer_name(default) == preferred_chain:
            return default

        for alternate in resp.link_targets("alternate"):
            chain = self._post(alternate, None, accept=_PEM_CHAIN).body.decode("ascii")
            if chain_issuer_name(chain) == preferred_chain:
                log.info("Using alternate chain issued by %s", preferred_chain)
                return chain
        log.warning("No chain issued by %s offered, using the default chain", preferred_chain)
        return default

    # -- transport ----------------------------------------------------------

    def _ssl_context(self) -> ssl.SSLContext:
        if self._ssl_ctx is None:
            ctx = ssl.create_default_context()
            if not self._settings.verify_ssl:
                ctx.check_hostname = False
                ctx.verify_mode = ssl.CERT_NONE
            self._ssl_ctx = ctx
        return self._ssl_ctx

    def _request(
        self,
        url: str,
        *,
        method: str,
        data: bytes | None = None,
        accept: str = "application/json",
    ) -> urllib.request.Request:
        headers = {"User-Agent": f"acmesites/{__version__}", "Accept": accept}
        if data is not None:
            headers["Content-Type"] = "application/jose+json"
        return urllib.request.Request(url, data=data, method=method, headers=headers)

    def _send(self, req: urllib.request.Request) -> AcmeResponse:
        try:
            with urllib.request.urlopen(  # noqa: S310
                req,
                timeout=self._settings.timeout_seconds,
                context=self._ssl_context(),
            ) as resp:
                response = AcmeResponse.build(resp.status, resp.headers, resp.read())
        except urllib.error.HTTPError as exc:
            body = b""
            with contextlib.suppress(Exception):
                body = exc.read()
            response = AcmeResponse.build(exc.code, exc.headers, body)
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach ACME server at {req.full_url}: {exc}"
            raise AcmeError(msg, retryable=True, resource=req.full_url) from exc

        nonce = response.headers.get("replay-nonce")
        if nonce:
            with self._lock:
                self._nonces.append(nonce)
        return response

    def _nonce(self) -> str:
        with self._lock:
            if self._nonces:
                return self._nonces.pop()
        url = self.directory()["newNonce"]
        resp = self._send(self._request(url, method="HEAD"))
        with self._lock:
            if resp.status >= 400 or not self._nonces:  # noqa: PLR2004
                raise self._error(resp, url, "requesting a nonce")
            return self._nonces.pop()

    def _post(
        self,
        url: str,
        payload: dict[str, Any] | None,
        *,
        use_kid: bool = True,
        accept: str = "application/json",
    ) -> AcmeResponse:
        kid = self.register() if use_kid else None
        for attempt in range(2):
            jws = sign_request(
                self.account_key,
                url=url,
                nonce=self._nonce(),
                payload=payload,
                kid=kid,
            )
            data = json.dumps(jws).encode("utf-8")
            resp = self._send(self._request(url, method="POST", data=data, accept=accept))
            if resp.status < 400:  # noqa: PLR2004
                return resp
            error = self._error(resp, url, "POST")
            if error.problem_type == BAD_NONCE and attempt == 0:
                log.debug("Nonce rejected for %s, retrying with a fresh one", url)
                continue
            raise error
        raise error  # pragma: no cover

    @staticmethod
    def _error(resp: AcmeResponse, url: str, action: str) -> AcmeError:
        problem: dict[str, Any] = {}
        with contextlib.suppress(ValueError):
            problem = resp.json()
        detail = problem.get("detail") or resp.body.decode("utf-8", errors="replace")[:500]
        msg = f"ACME server returned HTTP {resp.status} while {action} {url}: {detail}"
        return AcmeError(
            msg,
            retryable=is_retryable_status(resp.status) or problem.get("type") == BAD_NONCE,
            status=resp.status,
            problem=problem,
            resource=url,
        )
