"""Unit tests for acmesites.core.jws."""

from __future__ import annotations

import base64
import hashlib
import json

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from acmesites.core.jws import (
    b64url_decode,
    b64url_encode,
    compute_thumbprint,
    dns01_txt_value,
    key_authorization,
    public_jwk,
    sign_request,
    signing_algorithm,
)


class TestBase64Url:
    @pytest.mark.parametrize("data", [b"", b"f", b"fo", b"foo", b"\xff\xfe"])
    def test_no_padding(self, data):
        encoded = b64url_encode(data)
        assert "=" not in encoded
        assert b64url_decode(encoded) == data

    def test_str_input(self):
        assert b64url_encode("hi") == b64url_encode(b"hi")


class TestThumbprint:
    def test_canonical_members_only(self):
        jwk = {"n": "bW9k", "kty": "RSA", "e": "AQAB", "alg": "RS256", "kid": "k1"}
        canonical = b'{"e":"AQAB","kty":"RSA","n":"bW9k"}'
        expected = b64url_encode(hashlib.sha256(canonical).digest())
        assert compute_thumbprint(jwk) == expected

    def test_ec_key(self):
        key = ec.generate_private_key(ec.SECP256R1())
        jwk = public_jwk(key)
        assert compute_thumbprint({**jwk, "use": "sig"}) == compute_thumbprint(jwk)
        assert len(compute_thumbprint(jwk)) == 43

    def test_unsupported_kty(self):
        with pytest.raises(ValueError, match="kty"):
            compute_thumbprint({"kty": "oct", "k": "abc"})


class TestKeyAuthorization:
    def test_format(self):
        assert key_authorization("tok", "thumb") == "tok.thumb"

    def test_dns01_value(self):
        expected = base64.urlsafe_b64encode(hashlib.sha256(b"tok.thumb").digest())
        assert dns01_txt_value("tok.thumb") == expected.rstrip(b"=").decode()


class TestSignRequest:
    def _decode(self, jws):
        protected = json.loads(b64url_decode(jws["protected"]))
        signing_input = f"{jws['protected']}.{jws['payload']}".encode()
        return protected, signing_input, b64url_decode(jws["signature"])

    def test_ec_with_jwk(self):
        key = ec.generate_private_key(ec.SECP256R1())
        jws = sign_request(key, url="https://ca/new", nonce="n1", payload={"a": 1})
        protected, signing_input, sig = self._decode(jws)

        assert protected == {
            "alg": "ES256",
            "nonce": "n1",
            "url": "https://ca/new",
            "jwk": public_jwk(key),
        }
        assert len(sig) == 64
        der = encode_dss_signature(
            int.from_bytes(sig[:32], "big"),
            int.from_bytes(sig[32:], "big"),
        )
        key.public_key().verify(der, signing_input, ec.ECDSA(hashes.SHA256()))

    def test_rsa_with_kid_and_empty_payload(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        jws = sign_request(key, url="https://ca/o", nonce="n2", payload=None, kid="acct")
        protected, signing_input, sig = self._decode(jws)

        assert jws["payload"] == ""
        assert protected["kid"] == "acct"
        assert "jwk" not in protected
        assert signing_algorithm(key) == "RS256"
        key.public_key().verify(sig, signing_input, padding.PKCS1v15(), hashes.SHA256())

    def test_p384(self):
        key = ec.generate_private_key(ec.SECP384R1())
        assert signing_algorithm(key) == "ES384"
        assert public_jwk(key)["crv"] == "P-384"

    def test_unsupported_curve(self):
        key = ec.generate_private_key(ec.SECP521R1())
        with pytest.raises(ValueError, match="Unsupported"):
            signing_algorithm(key)
