from __future__ import annotations

import logging
import os
import sys

from sqlalchemy.orm import Session

from . import models
from .services.auth_identities import PASSWORD_PROVIDER, create_password_identity

logger = logging.getLogger(__name__)


def ensure_site_admin(db: Session, email: str, password: str, name: str = "Site Admin") -> models.User:
    """
    Make sure a verified site admin with a password login exists for ``email``.

    An existing account is promoted; its password is left alone unless it
    has no password sign-in yet.
    """
    email = email.strip().lower()
    user = db.query(models.User).filter(models.User.email == email).first()

    if user is None:
        user = models.User(
            name=name,
            email=email,
            email_verified=True,
            role=models.ROLE_SITE_ADMIN,
        )
        db.add(user)
        db.flush()
        logger.info(f"ensure_seed_data: Created site admin {email}")
    elif user.role != models.ROLE_SITE_ADMIN:
        logger.info(f"ensure_seed_data: Promoting {email} from {user.role} to site_admin")
        user.role = models.ROLE_SITE_ADMIN
        user.email_verified = True

    has_password = (
        db.query(models.AuthIdentity)
        .filter(
            models.AuthIdentity.user_id == user.id,
            models.AuthIdentity.provider == PASSWORD_PROVIDER,
        )
        .first()
    )
    if not has_password:
        create_password_identity(db, user.id, email, password)

    db.commit()
    db.refresh(user)
    return user


def ensure_seed_data() -> None:
    """
    Create the initial site admin from SITE_ADMIN_EMAIL / SITE_ADMIN_PASSWORD.

    Does nothing when either variable is unset.
    """
    email = os.getenv("SITE_ADMIN_EMAIL")
    password = os.getenv("SITE_ADMIN_PASSWORD")
    if not email or not password:
        logger.info("ensure_seed_data: SITE_ADMIN_EMAIL / SITE_ADMIN_PASSWORD not set, nothing to seed.")
        return

    from .db import SessionLocal

    db = SessionLocal()
    try:
        ensure_site_admin(db, email, password, os.getenv("SITE_ADMIN_NAME", "Site Admin"))
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level="INFO")

    if len(sys.argv) >= 3:
        from .db import SessionLocal

        session = SessionLocal()
        try:
            admin = ensure_site_admin(session, sys.argv[1], sys.argv[2], *sys.argv[3:4])
            logger.info(f"Site admin ready: {admin.email} (id {admin.id})")
        finally:
            session.close()
    else:
        ensure_seed_data()
