"""Forgotten-password flow: emailed single-use reset tokens."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from .. import models
from .auth_identities import update_password
from .email import send_password_reset_email
from .tokens import find_live_token, issue_emailed_token, utcnow

logger = logging.getLogger(__name__)

RESET_LIFETIME = timedelta(hours=1)
MAX_RESETS_PER_HOUR = 3


def reset_password(db: Session, token: str, new_password: str) -> models.User | None:
    """
    Consume a reset token and set a new password.

    Every outstanding refresh token of the member is revoked so other
    sessions have to sign in again. Returns None when the token is invalid
    or the account has no password sign-in.
    """
    record = find_live_token(db, models.PasswordResetToken, token)
    if record is None:
        return None

    member = record.user
    if not update_password(db, member.id, new_password):
        logger.warning(f"User {member.id} has no password identity to reset")
        return None

    record.used_at = utcnow()
    db.query(models.RefreshToken).filter(
        models.RefreshToken.user_id == member.id,
        models.RefreshToken.revoked == False,  # noqa: E712
    ).update({"revoked": True}, synchronize_session=False)
    db.commit()

    logger.info(f"Password reset for user {member.id}")
    return member


def send_reset_email_for_user(db: Session, user: models.User) -> bool:
    """
    Issue a reset token and mail the link.

    Raises:
        ValueError: If the member asked for too many resets this hour
    """
    # Drop this member's expired, never-used tokens
    db.query(models.PasswordResetToken).filter(
        models.PasswordResetToken.user_id == user.id,
        models.PasswordResetToken.used_at.is_(None),
        models.PasswordResetToken.expires_at < utcnow(),
    ).delete(synchronize_session=False)
    db.commit()

    token, expires_at = issue_emailed_token(
        db,
        models.PasswordResetToken,
        user.id,
        lifetime=RESET_LIFETIME,
        max_per_hour=MAX_RESETS_PER_HOUR,
    )
    logger.info(f"Password reset token for user {user.id} valid until {expires_at}")
    return send_password_reset_email(to_email=user.email, token=token, name=user.name) is not None
