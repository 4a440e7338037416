"""JSON Web Signature helpers for the ACME client side (RFC 7515/7638/8555).

Builds account JWKs, RFC 7638 thumbprints, key authorizations and
flattened JWS request bodies signed with the account key.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

AccountKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey

# Maps curve name to (JWA alg, JWK crv, hash, coordinate size in bytes)
_EC_PARAMS: dict[str, tuple[str, str, hashes.HashAlgorithm, int]] = {
    "secp256r1": ("ES256", "P-256", hashes.SHA256(), 32),
    "secp384r1": ("ES384", "P-384", hashes.SHA384(), 48),
}


def b64url_encode(data: bytes | str) -> str:
    """Encode to base64url without padding."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode a base64url string (no padding required)."""
    remainder = len(s) % 4
    if remainder:
        s += "=" * (4 - remainder)
    return base64.urlsafe_b64decode(s)


def _int_to_b64(value: int, length: int | None = None) -> str:
    if length is None:
        length = max(1, (value.bit_length() + 7) // 8)
    return b64url_encode(value.to_bytes(length, "big"))


def _ec_params(key: ec.EllipticCurvePrivateKey | ec.EllipticCurvePublicKey) -> tuple:
    try:
        return _EC_PARAMS[key.curve.name]
    except KeyError:
        msg = f"Unsupported account key curve '{key.curve.name}'"
        raise ValueError(msg) from None


def public_jwk(key: AccountKey) -> dict[str, str]:
    """Return the public JWK of an account private key."""
    if isinstance(key, rsa.RSAPrivateKey):
        numbers = key.public_key().public_numbers()
        return {
            "e": _int_to_b64(numbers.e),
            "kty": "RSA",
            "n": _int_to_b64(numbers.n),
        }
    if isinstance(key, ec.EllipticCurvePrivateKey):
        _, crv, _, size = _ec_params(key)
        numbers = key.public_key().public_numbers()
        return {
            "crv": crv,
            "kty": "EC",
            "x": _int_to_b64(numbers.x, size),
            "y": _int_to_b64(numbers.y, size),
        }
    msg = f"Unsupported account key type {type(key).__name__}"
    raise ValueError(msg)


def signing_algorithm(key: AccountKey) -> str:
    """Return the JWA algorithm name used for *key*."""
    if isinstance(key, rsa.RSAPrivateKey):
        return "RS256"
    return _ec_params(key)[0]


def compute_thumbprint(jwk_dict: dict[str, Any]) -> str:
    """Compute the RFC 7638 JWK Thumbprint using SHA-256.

    Only the required members take part, serialised in lexicographic
    order without whitespace.
    """
    kty = jwk_dict.get("kty")
    if kty == "RSA":
        canonical = {"e": jwk_dict["e"], "kty": "RSA", "n": jwk_dict["n"]}
    elif kty == "EC":
        canonical = {
            "crv": jwk_dict["crv"],
            "kty": "EC",
            "x": jwk_dict["x"],
            "y": jwk_dict["y"],
        }
    else:
        msg = f"Cannot compute thumbprint for kty '{kty}'"
        raise ValueError(msg)

    canonical_json = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return b64url_encode(hashlib.sha256(canonical_json.encode("ascii")).digest())


def key_authorization(token: str, thumbprint: str) -> str:
    """Compute the key authorization string ``token.thumbprint`` (RFC 8555 §8.1)."""
    return f"{token}.{thumbprint}"


def dns01_txt_value(key_authz: str) -> str:
    """Return the DNS-01 TXT value: base64url(SHA-256(key authorization))."""
    return b64url_encode(hashlib.sha256(key_authz.encode("ascii")).digest())


def _sign(key: AccountKey, message: bytes) -> bytes:
    if isinstance(key, rsa.RSAPrivateKey):
        return key.sign(message, padding.PKCS1v15(), hashes.SHA256())
    _, _, hash_alg, size = _ec_params(key)
    der = key.sign(message, ec.ECDSA(hash_alg))
    r, s = decode_dss_signature(der)
    return r.to_bytes(size, "big") + s.to_bytes(size, "big")


def sign_request(
    key: AccountKey,
    *,
    url: str,
    nonce: str,
    payload: dict[str, Any] | None,
    kid: str | None = None,
) -> dict[str, str]:
    """Build a flattened JWS for an ACME POST.

    ``payload=None`` produces a POST-as-GET request (empty payload).
    Without *kid* the public JWK is embedded (new-account requests).
    """
    protected: dict[str, Any] = {
        "alg": signing_algorithm(key),
        "nonce": nonce,
        "url": url,
    }
    if kid:
        protected["kid"] = kid
    else:
        protected["jwk"] = public_jwk(key)

    protected_b64 = b64url_encode(json.dumps(protected, separators=(",", ":")))
    payload_b64 = "" if payload is None else b64url_encode(json.dumps(payload))
    signature = _sign(key, f"{protected_b64}.{payload_b64}".encode("ascii"))
    return {
        "protected": protected_b64,
        "payload": payload_b64,
        "signature": b64url_encode(signature),
    }
