"""Endpoints for the signed-in member's own profile."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..errors import ValidationError
from ..services.engagement import storage_errors
from ..validation import require_text
from ..vault import MediaRejected, save_media, try_delete_by_public_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=schemas.UserFull)
def get_profile(current_user: models.User = Depends(get_current_user)) -> schemas.UserFull:
    return schemas.UserFull.model_validate(current_user)


@router.patch("", response_model=schemas.UserFull)
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserFull:
    """Update display name and notification preference. Role is not editable here."""
    with storage_errors(db, f"Updating profile of user {current_user.id}"):
        if payload.name is not None:
            current_user.name = require_text(payload.name, "Name")
        if payload.email_notifications is not None:
            current_user.email_notifications = payload.email_notifications

        db.commit()
        db.refresh(current_user)

    return schemas.UserFull.model_validate(current_user)


@router.post("/avatar", response_model=schemas.UserFull, status_code=status.HTTP_201_CREATED)
async def upload_avatar(
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserFull:
    """
    Upload a new avatar.

    Stores raw bytes as-uploaded (no re-encoding) so animated GIF/WEBP stay animated.
    """
    file_content = await image.read()
    try:
        avatar_url = save_media("avatar", file_content, image.content_type)
    except MediaRejected as e:
        raise ValidationError(str(e)) from None

    old_avatar_url = current_user.avatar_url
    with storage_errors(db, f"Saving avatar of user {current_user.id}"):
        current_user.avatar_url = avatar_url
        db.commit()
        db.refresh(current_user)

    try_delete_by_public_url(old_avatar_url)
    return schemas.UserFull.model_validate(current_user)


@router.delete("/avatar", response_model=schemas.UserFull)
def delete_avatar(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserFull:
    """
    Remove (clear) the avatar without uploading a new one.

    If the previous avatar URL points into our vault, we also attempt a
    best-effort file deletion.
    """
    old_avatar_url = current_user.avatar_url
    with storage_errors(db, f"Clearing avatar of user {current_user.id}"):
        current_user.avatar_url = None
        db.commit()
        db.refresh(current_user)

    try_delete_by_public_url(old_avatar_url)
    return schemas.UserFull.model_validate(current_user)
