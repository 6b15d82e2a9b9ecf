"""Member management endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import ensure_not_self, get_current_user, is_site_admin, require_site_admin
from ..deps import get_db
from ..errors import NotFound
from ..services.engagement import storage_errors
from ..services.reports import ensure_authored_sources_not_reported
from ..vault import try_delete_by_public_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


@router.get("", response_model=list[schemas.UserFull] | list[schemas.UserPublic])
def list_users(
    q: str | None = None,
    role: schemas.RoleName | None = None,
    limit: int = Query(200, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.UserFull] | list[schemas.UserPublic]:
    """
    List members, oldest account first.

    Site admins get the full record (role, notification flag) so they can
    manage accounts; everyone else gets the public fields.
    """
    query = db.query(models.User)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(models.User.name.ilike(pattern) | models.User.email.ilike(pattern))
    if role:
        query = query.filter(models.User.role == role)

    users = query.order_by(models.User.created_at, models.User.id).limit(limit).all()

    if is_site_admin(current_user):
        return [schemas.UserFull.model_validate(u) for u in users]
    return [schemas.UserPublic.model_validate(u) for u in users]


@router.get("/{id}", response_model=schemas.UserFull | schemas.UserPublic)
def get_user(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserFull | schemas.UserPublic:
    """Get one member. Full record for the member themselves and site admins."""
    user = _get_user_or_404(db, id)
    if user.id == current_user.id or is_site_admin(current_user):
        return schemas.UserFull.model_validate(user)
    return schemas.UserPublic.model_validate(user)


@router.patch("/{id}", response_model=schemas.UserFull)
def update_user(
    id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserFull:
    """
    Change another member's role or notification flag.

    Site admins only, and never on their own account.
    """
    ensure_not_self(id, current_user)
    require_site_admin(current_user)

    user = _get_user_or_404(db, id)

    with storage_errors(db, f"Updating user {id}"):
        if payload.role is not None and payload.role != user.role:
            logger.info(f"User {current_user.id} changed role of user {user.id}: {user.role} -> {payload.role}")
            user.role = payload.role
        if payload.email_notifications is not None:
            user.email_notifications = payload.email_notifications

        db.commit()
        db.refresh(user)

    return schemas.UserFull.model_validate(user)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """
    Delete a member account and everything hanging from it.

    Authored posts, events and schedules go with the account, as do the
    member's likes, participation rows, comments, poll answers and messages.
    Refused with 409 while another member's report points at one of the
    member's events or activity schedules.
    """
    ensure_not_self(id, current_user)
    require_site_admin(current_user)

    user = _get_user_or_404(db, id)
    ensure_authored_sources_not_reported(db, user.id)
    avatar_url = user.avatar_url

    with storage_errors(db, f"Deleting user {id}"):
        db.delete(user)
        db.commit()

    logger.info(f"User {current_user.id} deleted user {id}")

    # Best-effort file cleanup (non-fatal)
    try_delete_by_public_url(avatar_url)
