"""Club chat endpoints.

Clients poll ``GET /messages?after=<last id>`` for new messages.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.engagement import storage_errors
from ..settings import MESSAGES_PAGE_LIMIT
from ..validation import require_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.get("", response_model=list[schemas.ChatMessage])
def list_messages(
    after: int | None = Query(None, ge=0, description="Only messages with a larger id"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.Message]:
    """
    Chat history, oldest first.

    Without ``after`` returns the latest page; with it, the messages posted
    since that id.
    """
    query = db.query(models.Message).options(joinedload(models.Message.user))

    if after is not None:
        return (
            query.filter(models.Message.id > after)
            .order_by(models.Message.id)
            .limit(MESSAGES_PAGE_LIMIT)
            .all()
        )

    latest = query.order_by(models.Message.id.desc()).limit(MESSAGES_PAGE_LIMIT).all()
    return list(reversed(latest))


@router.post("", response_model=schemas.ChatMessage, status_code=status.HTTP_201_CREATED)
def post_message(
    payload: schemas.ChatMessageCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Message:
    message = models.Message(user_id=current_user.id, content=require_text(payload.content, "Message"))
    with storage_errors(db, f"Posting message by user {current_user.id}"):
        db.add(message)
        db.commit()
        db.refresh(message)

    return message
