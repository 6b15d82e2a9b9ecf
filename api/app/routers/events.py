"""Event endpoints."""

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
from ..services.notifications import NEW_EVENT, dispatch_content_notification, event_payload
from ..services.reports import create_report_from_source, ensure_source_not_reported
from ..validation import require_text
from .engagement import add_engagement_routes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


def _event_query(db: Session):
    return db.query(models.Event).options(
        selectinload(models.Event.author),
        selectinload(models.Event.participants).selectinload(models.EventParticipant.user),
        selectinload(models.Event.comments),
    )


def _get_event_or_404(db: Session, event_id: int) -> models.Event:
    event = _event_query(db).filter(models.Event.id == event_id).first()
    if not event:
        raise NotFound("Event not found")
    return event


@router.get("", response_model=list[schemas.Event])
def list_events(
    include_reported: bool = False,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.Event]:
    """
    List events, newest first.

    Events that already have a report post are left out unless
    ``include_reported`` is set.
    """
    query = _event_query(db)
    if not include_reported:
        query = query.filter(~models.Event.reports.any())
    return query.order_by(models.Event.created_at.desc(), models.Event.id.desc()).limit(limit).all()


@router.post("", response_model=schemas.Event, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: schemas.EventCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Event:
    """Create an event. Admins only."""
    event = models.Event(
        user_id=current_user.id,
        title=require_text(payload.title, "Title"),
        content=require_text(payload.content, "Content"),
        date=payload.date,
    )
    with storage_errors(db, f"Creating event by user {current_user.id}"):
        db.add(event)
        db.commit()

    logger.info(f"User {current_user.id} created event {event.id}")
    dispatch_content_notification(NEW_EVENT, event_payload(event))
    return _get_event_or_404(db, event.id)


@router.get("/{id}", response_model=schemas.Event)
def get_event(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Event:
    return _get_event_or_404(db, id)


@router.get("/{id}/details", response_model=schemas.EventDetail)
def get_event_details(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.EventDetail:
    event = _get_event_or_404(db, id)
    detail = schemas.EventDetail.model_validate(event)
    detail.comments = [
        schemas.Comment.model_validate(c) for c in engagement.list_comments(db, engagement.EVENT, id)
    ]
    return detail


@router.patch("/{id}", response_model=schemas.Event)
def update_event(
    id: int,
    payload: schemas.EventUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Event:
    """Edit an event. Admins only."""
    event = _get_event_or_404(db, id)

    with storage_errors(db, f"Updating event {id}"):
        if payload.title is not None:
            event.title = require_text(payload.title, "Title")
        if payload.content is not None:
            event.content = require_text(payload.content, "Content")
        if "date" in payload.model_fields_set:
            event.date = payload.date
        db.commit()

    logger.info(f"User {current_user.id} updated event {id}")
    return _get_event_or_404(db, id)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> None:
    """
    Delete an event with its participants and comments. Admins only.

    An event that already has report posts cannot be deleted (409).
    """
    event = _get_event_or_404(db, id)
    ensure_source_not_reported(db, engagement.EVENT, event.id)

    with storage_errors(db, f"Deleting event {id}"):
        db.delete(event)
        db.commit()

    logger.info(f"User {current_user.id} deleted event {id}")


@router.post("/{id}/report", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def create_event_report(
    id: int,
    payload: schemas.ReportCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Post:
    """
    Write the activity report for an event. Admins only.

    Members participating in the event are carried over as participants of
    the report.
    """
    return create_report_from_source(
        db,
        engagement.EVENT,
        id,
        current_user,
        payload.title,
        payload.content,
        youtube_urls=payload.youtube_urls,
        images=payload.images,
    )


add_engagement_routes(router, engagement.EVENT)
