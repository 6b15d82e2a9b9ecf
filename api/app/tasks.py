from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any

from celery import Celery

from .settings import CELERY_TASK_ALWAYS_EAGER

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://cache:6379/0"

celery_app = Celery(
    "bold",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    task_always_eager=CELERY_TASK_ALWAYS_EAGER,
    task_routes={"app.tasks.send_content_notification": {"queue": "default"}},
    beat_schedule={
        "cleanup-expired-tokens": {
            "task": "app.tasks.cleanup_expired_tokens",
            "schedule": 86400.0,  # Daily
        },
    },
    timezone="UTC",
)


@celery_app.task(name="app.tasks.send_content_notification", bind=True)
def send_content_notification(self, kind: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Deliver a new-content email to every opted-in member."""
    from .db import SessionLocal
    from .services.notifications import send_content_notification as send_now

    db = SessionLocal()
    try:
        return send_now(db, kind, payload)
    except Exception as e:
        logger.error(f"Notification task {kind} for {payload.get('id')} failed: {e}", exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(name="app.tasks.cleanup_expired_tokens", bind=True)
def cleanup_expired_tokens(self) -> dict[str, int]:
    """Delete expired refresh, verification and password reset tokens."""
    from . import models
    from .db import SessionLocal

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    db = SessionLocal()
    try:
        removed = {
            "refresh_tokens": db.query(models.RefreshToken)
            .filter(models.RefreshToken.expires_at < now)
            .delete(synchronize_session=False),
            "email_verification_tokens": db.query(models.EmailVerificationToken)
            .filter(models.EmailVerificationToken.expires_at < now)
            .delete(synchronize_session=False),
            "password_reset_tokens": db.query(models.PasswordResetToken)
            .filter(models.PasswordResetToken.expires_at < now)
            .delete(synchronize_session=False),
        }
        db.commit()
        logger.info(f"Removed expired tokens: {removed}")
        return removed
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
