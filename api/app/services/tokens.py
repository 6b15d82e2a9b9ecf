"""Hashed tokens: only the SHA256 of a token is stored, the plain value goes to the member."""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session


def utcnow() -> datetime:
    """Naive UTC, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def new_token() -> str:
    return secrets.token_urlsafe(32)


def issue_emailed_token(
    db: Session,
    model: Any,
    user_id: int,
    *,
    lifetime: timedelta,
    max_per_hour: int,
    **columns: Any,
) -> tuple[str, datetime]:
    """
    Store a new single-use token row for a member and return (plain token, expiry).

    Raises:
        ValueError: when the member already received max_per_hour tokens of
            this kind within the last hour
    """
    issued_last_hour = (
        db.query(model)
        .filter(model.user_id == user_id, model.created_at >= utcnow() - timedelta(hours=1))
        .count()
    )
    if issued_last_hour >= max_per_hour:
        raise ValueError(f"Rate limit exceeded: at most {max_per_hour} per hour")

    token = new_token()
    expires_at = utcnow() + lifetime
    db.add(model(user_id=user_id, token_hash=hash_token(token), expires_at=expires_at, **columns))
    db.commit()
    return token, expires_at


def find_live_token(db: Session, model: Any, token: str) -> Any | None:
    """The unused, unexpired row matching a plain token."""
    return (
        db.query(model)
        .filter(
            model.token_hash == hash_token(token),
            model.used_at.is_(None),
            model.expires_at > utcnow(),
        )
        .first()
    )
