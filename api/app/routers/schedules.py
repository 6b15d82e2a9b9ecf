"""Date poll endpoints: admins propose candidate dates, members answer."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..auth import get_current_user, require_admin_user
from ..deps import get_db
from ..errors import NotFound
from ..services.engagement import storage_errors
from ..validation import optional_text, require_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["Schedules"])


def _schedule_query(db: Session):
    return db.query(models.Schedule).options(
        selectinload(models.Schedule.dates)
        .selectinload(models.ScheduleDate.responses)
        .selectinload(models.ScheduleResponse.user)
    )


def _get_schedule_or_404(db: Session, schedule_id: int) -> models.Schedule:
    schedule = _schedule_query(db).filter(models.Schedule.id == schedule_id).first()
    if not schedule:
        raise NotFound("Schedule not found")
    return schedule


@router.get("", response_model=list[schemas.Schedule])
def list_schedules(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.Schedule]:
    """List date polls, newest first, with every answer per candidate date."""
    return _schedule_query(db).order_by(models.Schedule.created_at.desc(), models.Schedule.id.desc()).all()


@router.post("", response_model=schemas.Schedule, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: schemas.ScheduleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Schedule:
    """Create a date poll with its candidate dates. Admins only."""
    schedule = models.Schedule(
        title=require_text(payload.title, "Title"),
        description=optional_text(payload.description),
        dates=[models.ScheduleDate(date=d) for d in sorted(set(payload.dates))],
    )
    with storage_errors(db, f"Creating schedule by user {current_user.id}"):
        db.add(schedule)
        db.commit()

    logger.info(f"User {current_user.id} created schedule {schedule.id} with {len(payload.dates)} dates")
    return _get_schedule_or_404(db, schedule.id)


@router.get("/{id}", response_model=schemas.Schedule)
def get_schedule(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Schedule:
    return _get_schedule_or_404(db, id)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> None:
    """Delete a date poll with its dates and answers. Admins only."""
    schedule = _get_schedule_or_404(db, id)
    with storage_errors(db, f"Deleting schedule {id}"):
        db.delete(schedule)
        db.commit()

    logger.info(f"User {current_user.id} deleted schedule {id}")


@router.post("/dates/{date_id}/response", response_model=schemas.ScheduleResponse)
def respond_to_date(
    date_id: int,
    payload: schemas.ScheduleResponseUpsert,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.ScheduleResponse:
    """
    Answer one candidate date.

    One answer per member and date: answering again overwrites the previous
    status and comment.
    """
    schedule_date = db.query(models.ScheduleDate).filter(models.ScheduleDate.id == date_id).first()
    if not schedule_date:
        raise NotFound("Schedule date not found")

    def find_response() -> models.ScheduleResponse | None:
        return (
            db.query(models.ScheduleResponse)
            .filter(
                models.ScheduleResponse.schedule_date_id == date_id,
                models.ScheduleResponse.user_id == current_user.id,
            )
            .first()
        )

    comment = optional_text(payload.comment)
    with storage_errors(db, f"Answering schedule date {date_id} by user {current_user.id}"):
        response = find_response()
        if response is None:
            response = models.ScheduleResponse(
                schedule_date_id=date_id,
                user_id=current_user.id,
                status=payload.status,
                comment=comment,
            )
            db.add(response)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                response = find_response()
                if response is None:
                    raise
                response.status = payload.status
                response.comment = comment
                db.commit()
        else:
            response.status = payload.status
            response.comment = comment
            db.commit()

        db.refresh(response)

    return response
