from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from zealfc.core.config import get_settings
from zealfc.core.errors import Forbidden, NotFound, Unauthenticated
from zealfc.core.identity import (
    CognitoVerifier,
    Identity,
    IdentityError,
    IdentityVerifier,
    extract_bearer,
)
from zealfc.db.session import get_db
from zealfc.models import Admin, User
from zealfc.services.games import find_admin_by_sub, find_user_by_sub
from zealfc.services.notifications import Notifier, build_notifier


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    return CognitoVerifier.from_settings(get_settings())


def get_notifier() -> Notifier:
    return build_notifier(get_settings())


def get_identity(
    authorization: str | None = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    try:
        return verifier.verify(extract_bearer(authorization))
    except IdentityError as exc:
        raise Unauthenticated(exc.detail, "Unauthorized: Invalid or missing token.") from exc


def get_current_user(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
) -> User:
    user = find_user_by_sub(db, identity.subject)
    if not user:
        raise NotFound("user_not_found", "User not found.")
    return user


def get_current_admin(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
) -> Admin:
    admin = find_admin_by_sub(db, identity.subject)
    if not admin:
        raise Forbidden("admin_required", "Forbidden: Admin access required.")
    return admin
