"""Activity reports generated from events and activity schedules."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from .. import models
from ..auth import require_admin
from ..errors import Conflict, InternalError, ValidationError
from ..validation import clean_image_urls, clean_youtube_urls, require_text
from .engagement import ACTIVITY_SCHEDULE, EVENT, get_content_item, get_kind
from .notifications import NEW_POST, dispatch_content_notification, post_payload

logger = logging.getLogger(__name__)

REPORT_SOURCE_KINDS = (EVENT, ACTIVITY_SCHEDULE)


def participating_user_ids(db: Session, source_kind: str, source_id: int) -> list[int]:
    """Ids of members currently marked as participating in a source, in sign-up order."""
    kind = get_kind(source_kind)
    model = kind.participant_model
    # One row per member is guaranteed by the participant unique constraint
    rows = (
        db.query(model.user_id)
        .filter(
            kind.participant_item_column() == source_id,
            model.status == models.PARTICIPATING,
        )
        .order_by(model.created_at, model.id)
        .all()
    )
    return [user_id for (user_id,) in rows]


def ensure_source_not_reported(db: Session, source_kind: str, source_id: int) -> None:
    """
    Refuse to delete an event or activity schedule that has report posts.

    Raises:
        Conflict: if any post links to the source
    """
    kind = get_kind(source_kind)
    link = getattr(models.Post, kind.report_fk)
    if db.query(models.Post.id).filter(link == source_id).first() is not None:
        raise Conflict(f"{kind.label} has activity reports and cannot be deleted")


def ensure_authored_sources_not_reported(db: Session, user_id: int) -> None:
    """
    Refuse to delete a member whose events or activity schedules were reported on
    by someone else. Reports the member wrote themselves go with the account.

    Raises:
        Conflict: if such a report exists
    """
    for source_kind in REPORT_SOURCE_KINDS:
        kind = get_kind(source_kind)
        link = getattr(models.Post, kind.report_fk)
        reported = (
            db.query(models.Post.id)
            .join(kind.model, kind.model.id == link)
            .filter(kind.model.user_id == user_id, models.Post.user_id != user_id)
            .first()
        )
        if reported is not None:
            raise Conflict(
                f"User authored a {kind.label.lower()} with activity reports by other members"
            )


def _copy_participants(db: Session, post: models.Post, user_ids: Iterable[int]) -> None:
    """Stage one participating row on the new report per source participant."""
    db.add_all(
        models.PostParticipant(post_id=post.id, user_id=user_id, status=models.PARTICIPATING)
        for user_id in user_ids
    )
    db.flush()


def create_report_from_source(
    db: Session,
    source_kind: str,
    source_id: int,
    author: models.User,
    title: str,
    content: str,
    youtube_urls: list[str] | None = None,
    images: list[str] | None = None,
) -> models.Post:
    """
    Create a report post for an event or activity schedule.

    The post, its source linkage and a copy of the source's participating
    members are written in one transaction: either all of them persist or
    none do. The new-post notification is queued only after the commit and
    cannot undo the report.

    Raises:
        ForbiddenError: if the author is not an admin
        ValidationError: for an unsupported source kind or blank fields
        NotFound: if the source does not exist
        InternalError: if any write fails (nothing is persisted)
    """
    require_admin(author)
    if source_kind not in REPORT_SOURCE_KINDS:
        raise ValidationError(f"Reports cannot be created from {source_kind}")

    title = require_text(title, "Title")
    content = require_text(content, "Content")
    youtube_urls = clean_youtube_urls(youtube_urls)
    images = clean_image_urls(images)

    kind = get_kind(source_kind)
    source = get_content_item(db, kind, source_id)

    try:
        post = models.Post(
            user_id=author.id,
            title=title,
            content=content,
            youtube_urls=youtube_urls,
            images=images,
            **{kind.report_fk: source.id},
        )
        db.add(post)
        db.flush()

        user_ids = participating_user_ids(db, source_kind, source.id)
        _copy_participants(db, post, user_ids)

        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(
            f"Failed to create report for {source_kind} {source_id} by user {author.id}: {e}",
            exc_info=True,
        )
        raise InternalError("Failed to create report") from e

    db.refresh(post)
    logger.info(
        f"User {author.id} created report post {post.id} from {source_kind} {source_id} "
        f"with {len(user_ids)} participants"
    )

    dispatch_content_notification(NEW_POST, post_payload(post))
    return post
