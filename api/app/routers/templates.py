"""Activity report template endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_admin_user
from ..deps import get_db
from ..services.engagement import storage_errors
from ..validation import require_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["Templates"])

REPORT_TEMPLATE_ID = "report_template"
REPORT_TEMPLATE_NAME = "活動報告テンプレート"
DEFAULT_REPORT_TEMPLATE = "# イベント名\n\n## 概要\n\n## 実施内容\n\n## 成果・感想\n"


def get_or_create_report_template(db: Session) -> models.Template:
    """Load the report template, creating it with the default body on first use."""
    template = db.query(models.Template).filter(models.Template.id == REPORT_TEMPLATE_ID).first()
    if template:
        return template

    template = models.Template(
        id=REPORT_TEMPLATE_ID,
        name=REPORT_TEMPLATE_NAME,
        content=DEFAULT_REPORT_TEMPLATE,
    )
    db.add(template)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently by another request
        db.rollback()
        return db.query(models.Template).filter(models.Template.id == REPORT_TEMPLATE_ID).one()

    db.refresh(template)
    logger.info("Created default report template")
    return template


@router.get("", response_model=schemas.Template)
def get_report_template(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Template:
    with storage_errors(db, "Loading report template"):
        return get_or_create_report_template(db)


@router.put("", response_model=schemas.Template)
def update_report_template(
    payload: schemas.TemplateUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin_user),
) -> models.Template:
    """Replace the report template body. Admins only."""
    content = require_text(payload.content, "Content")
    with storage_errors(db, "Updating report template"):
        template = get_or_create_report_template(db)
        template.content = content
        db.commit()
        db.refresh(template)

    logger.info(f"User {current_user.id} updated the report template")
    return template
