"""Image and video upload endpoints for post media."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status

from .. import models, schemas
from ..auth import get_current_user
from ..errors import ValidationError
from ..vault import MediaRejected, save_media

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Uploads"])


async def _store(kind: str, file: UploadFile, user: models.User) -> schemas.UploadResponse:
    content = await file.read()
    try:
        url = save_media(kind, content, file.content_type)
    except MediaRejected as e:
        logger.info(f"Rejected {kind} upload from user {user.id}: {e}")
        raise ValidationError(str(e)) from None

    return schemas.UploadResponse(url=url, size=len(content), mime_type=(file.content_type or "").lower())


@router.post("/image", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UploadResponse:
    """Store an image (any ``image/*`` type) and return its public URL."""
    return await _store("image", file, current_user)


@router.post("/video", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UploadResponse:
    """Store a video (any ``video/*`` type) and return its public URL."""
    return await _store("video", file, current_user)
