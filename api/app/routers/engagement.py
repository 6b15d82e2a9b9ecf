"""Participation and comment endpoints shared by every content router.

``add_engagement_routes`` attaches the same set of routes to the posts,
events and activity-schedules routers so the three surfaces cannot drift
apart.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services import engagement


def add_engagement_routes(router: APIRouter, kind: str) -> None:
    """Register participation and comment routes for one content kind."""
    label = engagement.get_kind(kind).label

    @router.get(
        "/{id}/participate",
        response_model=schemas.Participation | None,
        summary=f"Get my participation on a {label.lower()}",
    )
    def get_my_participation(
        id: int,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
    ):
        return engagement.get_participation(db, kind, id, current_user)

    @router.post(
        "/{id}/participate",
        response_model=schemas.Participation,
        summary=f"Set my participation on a {label.lower()}",
    )
    def set_participation(
        id: int,
        payload: schemas.ParticipationRequest,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
    ):
        return engagement.set_participation(db, kind, id, current_user, payload.status)

    @router.delete(
        "/{id}/participate",
        status_code=status.HTTP_204_NO_CONTENT,
        summary=f"Clear my participation on a {label.lower()}",
    )
    def clear_participation(
        id: int,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
    ) -> None:
        engagement.clear_participation(db, kind, id, current_user)

    @router.get(
        "/{id}/participants",
        response_model=list[schemas.Participation],
        summary=f"List participants of a {label.lower()}",
    )
    def list_participants(
        id: int,
        participation: schemas.ParticipationStatus | None = None,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
    ):
        return engagement.list_participants(db, kind, id, status=participation)

    @router.get(
        "/{id}/comments",
        response_model=list[schemas.Comment],
        summary=f"List comments on a {label.lower()}",
    )
    def list_comments(
        id: int,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
    ):
        return engagement.list_comments(db, kind, id)

    @router.post(
        "/{id}/comments",
        response_model=schemas.Comment,
        status_code=status.HTTP_201_CREATED,
        summary=f"Comment on a {label.lower()}",
    )
    def add_comment(
        id: int,
        payload: schemas.CommentCreate,
        db: Session = Depends(get_db),
        current_user: models.User = Depends(get_current_user),
    ):
        return engagement.add_comment(db, kind, id, current_user, payload.content)
