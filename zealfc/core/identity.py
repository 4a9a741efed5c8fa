"""Bearer-token verification against the managed identity provider.

The rest of the code only sees :class:`IdentityVerifier`; the Cognito
implementation is built once per process by ``zealfc.api.deps`` and can be
swapped in tests through FastAPI dependency overrides.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol

import requests
from jose import JWTError, jwt

from zealfc.core.config import Settings

logger = logging.getLogger(__name__)

Pool = Literal["user", "admin"]
JwksFetcher = Callable[[str], dict]


class IdentityError(Exception):
    detail = "token_verification_failed"


class MissingToken(IdentityError):
    detail = "missing_token"


class InvalidToken(IdentityError):
    detail = "invalid_token"


class UnknownIssuer(IdentityError):
    detail = "unknown_issuer"


class KeyFetchFailed(IdentityError):
    detail = "signing_keys_unavailable"


@dataclass(frozen=True)
class Identity:
    subject: str
    pool: Pool
    claims: dict[str, Any] = field(default_factory=dict)


class IdentityVerifier(Protocol):
    def verify(self, token: str | None) -> Identity: ...


def extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    scheme, _, token = value.partition(" ")
    if scheme.lower() == "bearer":
        return token.strip() or None
    return value or None


def _fetch_jwks_http(url: str, timeout: int) -> dict:
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.json()


class CognitoVerifier:
    """Verifies RS256 tokens issued by the user pool or the admin pool."""

    def __init__(
        self,
        issuers: dict[str, Pool],
        *,
        cache_seconds: int = 3600,
        fetcher: JwksFetcher | None = None,
        timeout: int = 15,
    ) -> None:
        self._issuers = dict(issuers)
        self._cache_seconds = cache_seconds
        self._fetcher = fetcher or (lambda url: _fetch_jwks_http(url, timeout))
        self._lock = threading.Lock()
        self._keys: dict[str, tuple[float, dict]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "CognitoVerifier":
        issuers: dict[str, Pool] = {}
        if settings.user_pool_issuer:
            issuers[settings.user_pool_issuer] = "user"
        if settings.admin_pool_issuer:
            issuers[settings.admin_pool_issuer] = "admin"
        return cls(
            issuers,
            cache_seconds=settings.JWKS_CACHE_SECONDS,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def _jwks_for(self, issuer: str) -> dict:
        now = time.monotonic()
        with self._lock:
            cached = self._keys.get(issuer)
            if cached and now - cached[0] < self._cache_seconds:
                return cached[1]
        try:
            jwks = self._fetcher(f"{issuer}/.well-known/jwks.json")
        except (requests.RequestException, ValueError) as exc:
            logger.error("jwks_fetch_failed issuer=%s detail=%s", issuer, exc)
            raise KeyFetchFailed(str(exc)) from exc
        with self._lock:
            self._keys[issuer] = (now, jwks)
        return jwks

    def verify(self, token: str | None) -> Identity:
        if not token:
            raise MissingToken()
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        issuer = unverified.get("iss")
        pool = self._issuers.get(issuer) if issuer else None
        if pool is None:
            logger.warning("token_unknown_issuer issuer=%s", issuer)
            raise UnknownIssuer(str(issuer))

        jwks = self._jwks_for(issuer)
        try:
            claims = jwt.decode(
                token,
                jwks,
                algorithms=["RS256"],
                issuer=issuer,
                options={"verify_aud": False},
            )
        except JWTError as exc:
            logger.warning("token_verification_failed issuer=%s detail=%s", issuer, exc)
            raise InvalidToken(str(exc)) from exc

        subject = claims.get("sub")
        if not subject:
            raise InvalidToken("missing_sub")
        return Identity(subject=str(subject), pool=pool, claims=claims)
