"""Engagement ledger: likes, participation and comments on content items.

Every operation is written once and parameterized by content kind. The
ledger enforces at most one like and one participation row per member per
item; the unique constraints in the schema back these checks up when two
requests race.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..errors import AlreadyEngaged, DomainError, InternalError, NotEngaged, NotFound, ValidationError
from ..validation import require_text

logger = logging.getLogger(__name__)

POST = "post"
EVENT = "event"
ACTIVITY_SCHEDULE = "activity_schedule"


@dataclass(frozen=True)
class ContentKind:
    """Table mapping for one kind of content item."""

    name: str
    label: str
    model: type[Any]
    participant_model: type[Any]
    comment_model: type[Any]
    # Foreign key column naming the item on participant and comment rows
    item_fk: str
    # Column on posts linking a report back to this kind of source
    report_fk: str | None = None

    def participant_item_column(self):
        return getattr(self.participant_model, self.item_fk)

    def comment_item_column(self):
        return getattr(self.comment_model, self.item_fk)


CONTENT_KINDS: dict[str, ContentKind] = {
    POST: ContentKind(
        name=POST,
        label="Post",
        model=models.Post,
        participant_model=models.PostParticipant,
        comment_model=models.Comment,
        item_fk="post_id",
    ),
    EVENT: ContentKind(
        name=EVENT,
        label="Event",
        model=models.Event,
        participant_model=models.EventParticipant,
        comment_model=models.EventComment,
        item_fk="event_id",
        report_fk="event_id",
    ),
    ACTIVITY_SCHEDULE: ContentKind(
        name=ACTIVITY_SCHEDULE,
        label="Activity schedule",
        model=models.ActivitySchedule,
        participant_model=models.ActivityParticipant,
        comment_model=models.ActivityComment,
        item_fk="activity_schedule_id",
        report_fk="activity_schedule_id",
    ),
}


def get_kind(name: str) -> ContentKind:
    try:
        return CONTENT_KINDS[name]
    except KeyError:
        raise ValidationError(f"Unknown content kind: {name}") from None


@contextmanager
def storage_errors(db: Session, action: str) -> Iterator[None]:
    """
    Map unexpected storage failures to ``InternalError``.

    Domain errors raised inside the block pass through untouched. Anything
    else coming out of SQLAlchemy is rolled back, logged and replaced by a
    generic 500 so no internals reach the client.
    """
    try:
        yield
    except DomainError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{action} failed: {e}", exc_info=True)
        raise InternalError() from e


def get_content_item(db: Session, kind: ContentKind | str, item_id: int) -> Any:
    """
    Load a content item by id.

    Raises:
        NotFound: if the item does not exist
    """
    if isinstance(kind, str):
        kind = get_kind(kind)
    item = db.query(kind.model).filter(kind.model.id == item_id).first()
    if item is None:
        raise NotFound(f"{kind.label} not found")
    return item


# ============================================================================
# LIKES
# ============================================================================


def add_like(db: Session, post_id: int, user: models.User) -> models.PostLike:
    """
    Record a like by ``user`` on a post.

    Raises:
        NotFound: if the post does not exist
        AlreadyEngaged: if the user already likes the post
    """
    with storage_errors(db, f"Like of post {post_id} by user {user.id}"):
        get_content_item(db, POST, post_id)

        existing = db.query(models.PostLike).filter(
            models.PostLike.post_id == post_id,
            models.PostLike.user_id == user.id,
        ).first()
        if existing:
            raise AlreadyEngaged("Already liked")

        like = models.PostLike(post_id=post_id, user_id=user.id)
        db.add(like)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request inserted the same like, or the post vanished
            db.rollback()
            get_content_item(db, POST, post_id)
            raise AlreadyEngaged("Already liked") from None

        db.refresh(like)
        logger.info(f"User {user.id} liked post {post_id}")
        return like


def remove_like(db: Session, post_id: int, user: models.User) -> None:
    """
    Remove ``user``'s like from a post.

    Raises:
        NotFound: if the post does not exist
        NotEngaged: if the user does not like the post
    """
    with storage_errors(db, f"Unlike of post {post_id} by user {user.id}"):
        get_content_item(db, POST, post_id)

        deleted = db.query(models.PostLike).filter(
            models.PostLike.post_id == post_id,
            models.PostLike.user_id == user.id,
        ).delete(synchronize_session=False)
        if not deleted:
            db.rollback()
            raise NotEngaged("Not liked yet")

        db.commit()
        logger.info(f"User {user.id} unliked post {post_id}")


def list_likes(db: Session, post_id: int) -> list[models.PostLike]:
    with storage_errors(db, f"Listing likes of post {post_id}"):
        get_content_item(db, POST, post_id)
        return (
            db.query(models.PostLike)
            .filter(models.PostLike.post_id == post_id)
            .order_by(models.PostLike.created_at, models.PostLike.id)
            .all()
        )


# ============================================================================
# PARTICIPATION
# ============================================================================


def _find_participation(db: Session, kind: ContentKind, item_id: int, user_id: int):
    model = kind.participant_model
    return (
        db.query(model)
        .options(joinedload(model.user))
        .filter(kind.participant_item_column() == item_id, model.user_id == user_id)
        .first()
    )


def get_participation(db: Session, kind: str, item_id: int, user: models.User):
    """Return the user's participation row on an item, or ``None``."""
    content_kind = get_kind(kind)
    with storage_errors(db, f"Reading participation on {kind} {item_id}"):
        get_content_item(db, content_kind, item_id)
        return _find_participation(db, content_kind, item_id, user.id)


def set_participation(db: Session, kind: str, item_id: int, user: models.User, status: str):
    """
    Create or overwrite the user's participation status on an item.

    Repeating the call with the same status is a no-op that returns the
    existing row.

    Raises:
        ValidationError: for an unknown status
        NotFound: if the item does not exist
    """
    if status not in models.PARTICIPATION_STATUSES:
        raise ValidationError(f"Invalid participation status: {status}")

    content_kind = get_kind(kind)
    with storage_errors(db, f"Participation on {kind} {item_id} by user {user.id}"):
        get_content_item(db, content_kind, item_id)

        row = _find_participation(db, content_kind, item_id, user.id)
        if row is None:
            row = content_kind.participant_model(
                **{content_kind.item_fk: item_id}, user_id=user.id, status=status
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                # Lost an insert race: the other request's row wins, overwrite its status
                db.rollback()
                get_content_item(db, content_kind, item_id)
                row = _find_participation(db, content_kind, item_id, user.id)
                if row is None:
                    raise
                row.status = status
                db.commit()
        elif row.status != status:
            row.status = status
            db.commit()

        db.refresh(row)
        logger.info(f"User {user.id} set participation on {kind} {item_id} to {status}")
        return row


def clear_participation(db: Session, kind: str, item_id: int, user: models.User) -> None:
    """
    Delete the user's participation row on an item.

    Raises:
        NotFound: if the item or the participation row does not exist
    """
    content_kind = get_kind(kind)
    with storage_errors(db, f"Clearing participation on {kind} {item_id} by user {user.id}"):
        get_content_item(db, content_kind, item_id)

        model = content_kind.participant_model
        deleted = db.query(model).filter(
            content_kind.participant_item_column() == item_id,
            model.user_id == user.id,
        ).delete(synchronize_session=False)
        if not deleted:
            db.rollback()
            raise NotFound("Participation not found")

        db.commit()
        logger.info(f"User {user.id} cleared participation on {kind} {item_id}")


def list_participants(db: Session, kind: str, item_id: int, status: str | None = None) -> list[Any]:
    content_kind = get_kind(kind)
    model = content_kind.participant_model
    with storage_errors(db, f"Listing participants of {kind} {item_id}"):
        get_content_item(db, content_kind, item_id)
        query = (
            db.query(model)
            .options(joinedload(model.user))
            .filter(content_kind.participant_item_column() == item_id)
        )
        if status is not None:
            query = query.filter(model.status == status)
        return query.order_by(model.created_at, model.id).all()


# ============================================================================
# COMMENTS
# ============================================================================


def add_comment(db: Session, kind: str, item_id: int, user: models.User, content: str | None):
    """
    Append a comment to an item.

    Comments are never edited or deleted individually; they disappear only
    with their item or their author.

    Raises:
        ValidationError: if the trimmed body is empty
        NotFound: if the item does not exist
    """
    body = require_text(content, "Comment")
    content_kind = get_kind(kind)
    with storage_errors(db, f"Comment on {kind} {item_id} by user {user.id}"):
        get_content_item(db, content_kind, item_id)

        comment = content_kind.comment_model(
            **{content_kind.item_fk: item_id}, user_id=user.id, content=body
        )
        db.add(comment)
        db.commit()
        db.refresh(comment)
        logger.info(f"User {user.id} commented on {kind} {item_id}")
        return comment


def list_comments(db: Session, kind: str, item_id: int) -> list[Any]:
    """All comments on an item, oldest first."""
    content_kind = get_kind(kind)
    model = content_kind.comment_model
    with storage_errors(db, f"Listing comments of {kind} {item_id}"):
        get_content_item(db, content_kind, item_id)
        return (
            db.query(model)
            .options(joinedload(model.user))
            .filter(content_kind.comment_item_column() == item_id)
            .order_by(model.created_at, model.id)
            .all()
        )
