"""Activity schedule endpoints."""

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
from ..services.notifications import (
    NEW_ACTIVITY_SCHEDULE,
    activity_schedule_payload,
    dispatch_content_notification,
)
from ..services.reports import create_report_from_source, ensure_source_not_reported
from ..validation import optional_text, require_text
from .engagement import add_engagement_routes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity-schedules", tags=["Activity Schedules"])


def _schedule_query(db: Session):
    return db.query(models.ActivitySchedule).options(
        selectinload(models.ActivitySchedule.author),
        selectinload(models.ActivitySchedule.participants).selectinload(
            models.ActivityParticipant.user
        ),
        selectinload(models.ActivitySchedule.comments),
    )


def _get_schedule_or_404(db: Session, schedule_id: int) -> models.ActivitySchedule:
    schedule = _schedule_query(db).filter(models.ActivitySchedule.id == schedule_id).first()
    if not schedule:
        raise NotFound("Activity schedule not found")
    return schedule


@router.get("", response_model=list[schemas.ActivitySchedule])
def list_schedules(
    include_reported: bool = False,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.ActivitySchedule]:
    """
    List activity schedules, latest date first.

    Schedules that already have a report post are left out unless
    ``include_reported`` is set.
    """
    query = _schedule_query(db)
    if not include_reported:
        query = query.filter(~models.ActivitySchedule.reports.any())
    return (
        query.order_by(models.ActivitySchedule.date.desc(), models.ActivitySchedule.id.desc())
        .limit(limit)
        .all()
    )


@router.post("", response_model=schemas.ActivitySchedule, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: schemas.ActivityScheduleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.ActivitySchedule:
    """Create an activity schedule. Admins only."""
    schedule = models.ActivitySchedule(
        user_id=current_user.id,
        title=require_text(payload.title, "Title"),
        content=require_text(payload.content, "Content"),
        date=payload.date,
        location=optional_text(payload.location),
    )
    with storage_errors(db, f"Creating activity schedule by user {current_user.id}"):
        db.add(schedule)
        db.commit()

    logger.info(f"User {current_user.id} created activity schedule {schedule.id}")
    dispatch_content_notification(NEW_ACTIVITY_SCHEDULE, activity_schedule_payload(schedule))
    return _get_schedule_or_404(db, schedule.id)


@router.get("/{id}", response_model=schemas.ActivitySchedule)
def get_schedule(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.ActivitySchedule:
    return _get_schedule_or_404(db, id)


@router.get("/{id}/details", response_model=schemas.ActivityScheduleDetail)
def get_schedule_details(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ActivityScheduleDetail:
    schedule = _get_schedule_or_404(db, id)
    detail = schemas.ActivityScheduleDetail.model_validate(schedule)
    detail.comments = [
        schemas.Comment.model_validate(c)
        for c in engagement.list_comments(db, engagement.ACTIVITY_SCHEDULE, id)
    ]
    return detail


@router.patch("/{id}", response_model=schemas.ActivitySchedule)
def update_schedule(
    id: int,
    payload: schemas.ActivityScheduleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.ActivitySchedule:
    """Edit an activity schedule. Admins only."""
    schedule = _get_schedule_or_404(db, id)

    with storage_errors(db, f"Updating activity schedule {id}"):
        if payload.title is not None:
            schedule.title = require_text(payload.title, "Title")
        if payload.content is not None:
            schedule.content = require_text(payload.content, "Content")
        if payload.date is not None:
            schedule.date = payload.date
        if "location" in payload.model_fields_set:
            schedule.location = optional_text(payload.location)
        db.commit()

    logger.info(f"User {current_user.id} updated activity schedule {id}")
    return _get_schedule_or_404(db, id)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> None:
    """
    Delete an activity schedule with its participants and comments. Admins only.

    A schedule that already has report posts cannot be deleted (409).
    """
    schedule = _get_schedule_or_404(db, id)
    ensure_source_not_reported(db, engagement.ACTIVITY_SCHEDULE, schedule.id)

    with storage_errors(db, f"Deleting activity schedule {id}"):
        db.delete(schedule)
        db.commit()

    logger.info(f"User {current_user.id} deleted activity schedule {id}")


@router.post("/{id}/report", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def create_schedule_report(
    id: int,
    payload: schemas.ReportCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Post:
    """
    Write the activity report for an activity schedule. Admins only.

    Members participating in the schedule are carried over as participants
    of the report.
    """
    return create_report_from_source(
        db,
        engagement.ACTIVITY_SCHEDULE,
        id,
        current_user,
        payload.title,
        payload.content,
        youtube_urls=payload.youtube_urls,
        images=payload.images,
    )


add_engagement_routes(router, engagement.ACTIVITY_SCHEDULE)
