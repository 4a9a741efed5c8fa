import time

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from zealfc.core.identity import (
    CognitoVerifier,
    InvalidToken,
    KeyFetchFailed,
    MissingToken,
    UnknownIssuer,
    extract_bearer,
)

USER_ISSUER = "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_users"
ADMIN_ISSUER = "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_admins"


@pytest.fixture(scope="module")
def keypair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "test-key"
    return private_pem, {"keys": [public_jwk]}


class CountingFetcher:
    def __init__(self, jwks):
        self.jwks = jwks
        self.urls = []

    def __call__(self, url):
        self.urls.append(url)
        return self.jwks


def _token(private_pem, issuer, **claims):
    payload = {"iss": issuer, "sub": "sub-123", "exp": int(time.time()) + 600, **claims}
    return jwt.encode(payload, private_pem, algorithm="RS256", headers={"kid": "test-key"})


def _verifier(fetcher):
    return CognitoVerifier({USER_ISSUER: "user", ADMIN_ISSUER: "admin"}, fetcher=fetcher)


def test_extract_bearer():
    """Bearer scheme is stripped case-insensitively; a bare header means no token."""
    assert extract_bearer("Bearer abc.def") == "abc.def"
    assert extract_bearer("bearer abc.def") == "abc.def"
    assert extract_bearer("BEARER   abc.def ") == "abc.def"
    assert extract_bearer("abc.def") == "abc.def"
    assert extract_bearer("Bearer ") is None
    assert extract_bearer("Bearer") is None
    assert extract_bearer("") is None
    assert extract_bearer(None) is None


def test_verifies_tokens_from_both_pools_and_caches_keys(keypair):
    """User and admin pool tokens verify; keys are fetched once per issuer."""
    private_pem, jwks = keypair
    fetcher = CountingFetcher(jwks)
    verifier = _verifier(fetcher)

    user = verifier.verify(_token(private_pem, USER_ISSUER))
    again = verifier.verify(_token(private_pem, USER_ISSUER, email="p@example.com"))
    admin = verifier.verify(_token(private_pem, ADMIN_ISSUER, sub="admin-sub"))

    assert (user.subject, user.pool) == ("sub-123", "user")
    assert again.claims["email"] == "p@example.com"
    assert (admin.subject, admin.pool) == ("admin-sub", "admin")
    assert fetcher.urls == [
        f"{USER_ISSUER}/.well-known/jwks.json",
        f"{ADMIN_ISSUER}/.well-known/jwks.json",
    ]


def test_rejects_missing_malformed_and_foreign_tokens(keypair):
    """Missing, malformed and foreign-issuer tokens are rejected."""
    private_pem, jwks = keypair
    verifier = _verifier(CountingFetcher(jwks))

    with pytest.raises(MissingToken):
        verifier.verify(None)
    with pytest.raises(InvalidToken):
        verifier.verify("not-a-jwt")
    with pytest.raises(UnknownIssuer):
        verifier.verify(_token(private_pem, "https://evil.example.com/pool"))


def test_rejects_expired_token_and_foreign_signature(keypair):
    """Expired or wrongly signed tokens are invalid."""
    private_pem, jwks = keypair
    verifier = _verifier(CountingFetcher(jwks))
    other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048).private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()

    with pytest.raises(InvalidToken):
        verifier.verify(_token(private_pem, USER_ISSUER, exp=int(time.time()) - 60))
    with pytest.raises(InvalidToken):
        verifier.verify(_token(other_key, USER_ISSUER))


def test_key_fetch_failure_is_reported(keypair):
    """JWKS outages surface as their own error."""
    private_pem, _ = keypair

    def broken(url):
        raise requests.ConnectionError("jwks endpoint unreachable")

    with pytest.raises(KeyFetchFailed) as excinfo:
        _verifier(broken).verify(_token(private_pem, USER_ISSUER))
    assert excinfo.value.detail == "signing_keys_unavailable"
