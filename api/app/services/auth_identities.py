"""Sign-in methods attached to a member account (password, Google)."""

from __future__ import annotations

import logging
from typing import Any

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..models import AuthIdentity

logger = logging.getLogger(__name__)

PASSWORD_PROVIDER = "password"
GOOGLE_PROVIDER = "google"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_password_identity(db: Session, user_id: int, email: str, password: str) -> AuthIdentity:
    """
    Stage a password identity for a member. The caller commits.

    The lowercased email is the login key, so two accounts can never share a
    password login even if their stored emails differ in case.
    """
    identity = AuthIdentity(
        user_id=user_id,
        provider=PASSWORD_PROVIDER,
        provider_user_id=email.lower(),
        secret_hash=hash_password(password),
        email=email.lower(),
    )
    db.add(identity)
    return identity


def create_oauth_identity(
    db: Session,
    user_id: int,
    provider: str,
    provider_user_id: str,
    email: str | None = None,
    provider_metadata: dict[str, Any] | None = None,
) -> AuthIdentity:
    """Stage an OAuth identity for a member. The caller commits."""
    identity = AuthIdentity(
        user_id=user_id,
        provider=provider,
        provider_user_id=provider_user_id,
        secret_hash=None,
        email=email,
        provider_metadata=provider_metadata or {},
    )
    db.add(identity)
    return identity


def _first_identity(db: Session, provider: str, **columns: Any) -> AuthIdentity | None:
    return db.query(AuthIdentity).filter_by(provider=provider, **columns).first()


def find_identity_by_password(db: Session, email: str, password: str) -> AuthIdentity | None:
    """Return the password identity for this email when the password matches."""
    identity = _first_identity(db, PASSWORD_PROVIDER, provider_user_id=email.lower())
    if identity is None or not identity.secret_hash:
        return None
    return identity if verify_password(password, identity.secret_hash) else None


def find_identity_by_oauth(db: Session, provider: str, provider_user_id: str) -> AuthIdentity | None:
    return _first_identity(db, provider, provider_user_id=provider_user_id)


def update_password(db: Session, user_id: int, new_password: str) -> bool:
    """
    Replace a member's password hash. The caller commits.

    Returns:
        True if password was updated, False if no password identity found
    """
    identity = _first_identity(db, PASSWORD_PROVIDER, user_id=user_id)
    if identity is None:
        return False

    identity.secret_hash = hash_password(new_password)
    return True
