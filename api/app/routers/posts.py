"""Activity report (post) endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..auth import get_current_user, require_admin_user
from ..deps import get_db
from ..errors import NotFound
from ..services import engagement
from ..services.engagement import storage_errors
from ..services.notifications import NEW_POST, dispatch_content_notification, post_payload
from ..validation import clean_image_urls, clean_youtube_urls, require_text
from ..vault import try_delete_by_public_url
from .engagement import add_engagement_routes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])


def _post_query(db: Session):
    return db.query(models.Post).options(
        selectinload(models.Post.author),
        selectinload(models.Post.likes),
        selectinload(models.Post.participants).selectinload(models.PostParticipant.user),
        selectinload(models.Post.comments),
    )


def _get_post_or_404(db: Session, post_id: int) -> models.Post:
    post = _post_query(db).filter(models.Post.id == post_id).first()
    if not post:
        raise NotFound("Post not found")
    return post


@router.get("", response_model=list[schemas.Post])
def list_posts(
    user_id: int | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.Post]:
    """List posts, newest first."""
    query = _post_query(db)
    if user_id is not None:
        query = query.filter(models.Post.user_id == user_id)
    return query.order_by(models.Post.created_at.desc(), models.Post.id.desc()).limit(limit).all()


@router.post("", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Post:
    """Create a standalone post (no event or schedule linkage). Admins only."""
    post = models.Post(
        user_id=current_user.id,
        title=require_text(payload.title, "Title"),
        content=require_text(payload.content, "Content"),
        youtube_urls=clean_youtube_urls(payload.youtube_urls),
        images=clean_image_urls(payload.images),
    )
    with storage_errors(db, f"Creating post by user {current_user.id}"):
        db.add(post)
        db.commit()

    logger.info(f"User {current_user.id} created post {post.id}")
    dispatch_content_notification(NEW_POST, post_payload(post))
    return _get_post_or_404(db, post.id)


@router.get("/{id}", response_model=schemas.Post)
def get_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Post:
    return _get_post_or_404(db, id)


@router.get("/{id}/details", response_model=schemas.PostDetail)
def get_post_details(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.PostDetail:
    """Post with likes, participants and the full comment thread."""
    post = _get_post_or_404(db, id)
    detail = schemas.PostDetail.model_validate(post)
    detail.comments = [
        schemas.Comment.model_validate(c) for c in engagement.list_comments(db, engagement.POST, id)
    ]
    return detail


@router.patch("/{id}", response_model=schemas.Post)
def update_post(
    id: int,
    payload: schemas.PostUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Post:
    """
    Edit a post's text and media. Admins only.

    The event / schedule linkage of a report cannot be changed.
    """
    post = _get_post_or_404(db, id)

    with storage_errors(db, f"Updating post {id}"):
        if payload.title is not None:
            post.title = require_text(payload.title, "Title")
        if payload.content is not None:
            post.content = require_text(payload.content, "Content")
        if payload.youtube_urls is not None:
            post.youtube_urls = clean_youtube_urls(payload.youtube_urls)
        if payload.images is not None:
            post.images = clean_image_urls(payload.images)
        db.commit()

    logger.info(f"User {current_user.id} updated post {id}")
    return _get_post_or_404(db, id)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> None:
    """Delete a post with its likes, participants and comments. Admins only."""
    post = _get_post_or_404(db, id)
    images = list(post.images or [])

    with storage_errors(db, f"Deleting post {id}"):
        db.delete(post)
        db.commit()

    logger.info(f"User {current_user.id} deleted post {id}")

    # Best-effort file cleanup (non-fatal)
    for url in images:
        try_delete_by_public_url(url)


@router.get("/{id}/likes", response_model=list[schemas.Like])
def list_likes(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.PostLike]:
    return engagement.list_likes(db, id)


@router.post("/{id}/like", response_model=schemas.Like, status_code=status.HTTP_201_CREATED)
def like_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.PostLike:
    """Like a post. Liking twice fails with 400."""
    return engagement.add_like(db, id, current_user)


@router.delete("/{id}/like", status_code=status.HTTP_204_NO_CONTENT)
def unlike_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """Remove my like. Fails with 400 if I have not liked the post."""
    engagement.remove_like(db, id, current_user)


add_engagement_routes(router, engagement.POST)
