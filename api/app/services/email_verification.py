"""Email address verification for password sign-ups."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from .. import models
from .email import send_verification_email
from .tokens import find_live_token, issue_emailed_token, utcnow

logger = logging.getLogger(__name__)

VERIFICATION_LIFETIME = timedelta(hours=24)
MAX_VERIFICATION_EMAILS_PER_HOUR = 6


def mark_email_verified(db: Session, token: str) -> models.User | None:
    """
    Consume a verification token and flag the member's email as verified.

    Returns None for unknown, used or expired tokens.
    """
    record = find_live_token(db, models.EmailVerificationToken, token)
    if record is None:
        logger.warning("Verification token not found, already used or expired")
        return None

    record.used_at = utcnow()
    member = record.user
    member.email_verified = True
    db.commit()
    db.refresh(member)

    logger.info(f"Email verified for user {member.id}")
    return member


def send_verification_email_for_user(db: Session, user: models.User) -> bool:
    """Issue a token and mail the link. False when rate limited or not delivered."""
    try:
        token, expires_at = issue_emailed_token(
            db,
            models.EmailVerificationToken,
            user.id,
            lifetime=VERIFICATION_LIFETIME,
            max_per_hour=MAX_VERIFICATION_EMAILS_PER_HOUR,
            email=user.email,
        )
    except ValueError as e:
        logger.warning(f"Not sending verification email to user {user.id}: {e}")
        return False

    logger.info(f"Verification token for user {user.id} valid until {expires_at}")
    return send_verification_email(to_email=user.email, token=token, name=user.name) is not None
