from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .deps import get_db
from .errors import ForbiddenError, SelfActionForbidden, Unauthenticated
from .services.tokens import hash_token, new_token, utcnow

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
oauth2_scheme = HTTPBearer(auto_error=False)

# JWT Configuration
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    raise RuntimeError(
        "JWT_SECRET_KEY environment variable is required but not set. "
        "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
# 256 bits minimum
if len(JWT_SECRET_KEY) < 32:
    raise RuntimeError(
        "JWT_SECRET_KEY is too short. Must be at least 32 characters long. "
        "Note: This checks length, not entropy. Use cryptographically random values."
    )
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
JWT_REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("JWT_REFRESH_TOKEN_EXPIRE_DAYS", "30"))

ROLE_RANK = {
    models.ROLE_MEMBER: 0,
    models.ROLE_ADMIN: 1,
    models.ROLE_SITE_ADMIN: 2,
}


# ============================================================================
# TOKENS
# ============================================================================


def create_access_token(user: models.User, expires_in_seconds: int | None = None) -> str:
    """
    Create a JWT access token for a user.

    The ``role`` claim is a rendering hint for the frontend only; authorization
    always re-reads the role from the database.
    """
    if expires_in_seconds is None:
        expires_in_seconds = JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    now = utcnow()
    payload = {
        "user_id": str(user.user_key),
        "role": user.role,
        "exp": now + timedelta(seconds=expires_in_seconds),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def access_token_expires_at() -> datetime:
    return utcnow() + timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES)


def create_refresh_token(user: models.User, db: Session, expires_in_days: int | None = None) -> str:
    """Create a refresh token for a user and store its hash in the database."""
    if expires_in_days is None:
        expires_in_days = JWT_REFRESH_TOKEN_EXPIRE_DAYS

    token = new_token()
    refresh_token = models.RefreshToken(
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=utcnow() + timedelta(days=expires_in_days),
    )
    db.add(refresh_token)
    db.commit()

    return token


def verify_refresh_token(token: str, db: Session) -> models.User | None:
    """Verify a refresh token and return the associated user."""
    refresh_token = db.query(models.RefreshToken).filter(
        models.RefreshToken.token_hash == hash_token(token),
        models.RefreshToken.expires_at > utcnow(),
        models.RefreshToken.revoked == False,  # noqa: E712
    ).first()

    if not refresh_token:
        return None

    return refresh_token.user


def revoke_refresh_token(token: str, db: Session) -> bool:
    """Revoke a refresh token."""
    refresh_token = db.query(models.RefreshToken).filter(
        models.RefreshToken.token_hash == hash_token(token)
    ).first()

    if refresh_token:
        refresh_token.revoked = True
        db.commit()
        return True

    return False


# ============================================================================
# IDENTITY & ROLE RESOLUTION
# ============================================================================


def resolve_principal(
    credentials: HTTPAuthorizationCredentials | None,
    db: Session,
) -> models.User | None:
    """
    Resolve the bearer token of the current request to a user.

    Never raises: a missing, expired or malformed token, or a token for a user
    that no longer exists, all resolve to ``None``. The returned user is loaded
    fresh from the database, so its ``role`` reflects any change made since the
    token was issued.
    """
    if credentials is None:
        return None

    try:
        payload = jwt.decode(
            credentials.credentials,
            JWT_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired access token")
        return None
    except jwt.InvalidTokenError:
        logger.debug("Rejected invalid access token")
        return None

    if payload.get("type") != "access":
        return None

    try:
        user_key = uuid.UUID(str(payload.get("user_id")))
    except ValueError:
        return None

    return db.query(models.User).filter(models.User.user_key == user_key).first()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Get current authenticated user from Bearer token."""
    user = resolve_principal(credentials, db)
    if user is None:
        raise Unauthenticated()
    return user


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User | None:
    """
    Get current user if authenticated, None otherwise.

    Used for endpoints that work differently for authenticated vs anonymous users.
    """
    return resolve_principal(credentials, db)


# ============================================================================
# AUTHORIZATION GUARD
# ============================================================================


def has_role_at_least(user: models.User | None, role: str) -> bool:
    if user is None:
        return False
    return ROLE_RANK.get(user.role, -1) >= ROLE_RANK[role]


def is_admin(user: models.User | None) -> bool:
    """True if the user is an admin or a site admin."""
    return has_role_at_least(user, models.ROLE_ADMIN)


def is_site_admin(user: models.User | None) -> bool:
    """True only for site admins."""
    return user is not None and user.role == models.ROLE_SITE_ADMIN


def require_admin(user: models.User | None) -> None:
    if not is_admin(user):
        raise ForbiddenError("Admin role required")


def require_site_admin(user: models.User | None) -> None:
    if not is_site_admin(user):
        raise ForbiddenError("Site admin role required")


def require_admin_user(user: models.User = Depends(get_current_user)) -> models.User:
    """Require that the current user has admin or site_admin role."""
    require_admin(user)
    return user


def ensure_not_self(target_user_id: int, actor: models.User) -> None:
    """
    Ensure the actor is not targeting their own account.

    Raises 403 Forbidden regardless of the actor's role.
    """
    if target_user_id == actor.id:
        raise SelfActionForbidden()
