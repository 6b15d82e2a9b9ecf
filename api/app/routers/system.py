"""System endpoints (health)."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..deps import get_db

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

# Global startup time for uptime calculation
_STARTUP_TIME = time.time()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health() -> schemas.HealthResponse:
    """Liveness check."""
    uptime_s = time.time() - _STARTUP_TIME
    return schemas.HealthResponse(status="ok", uptime_s=uptime_s)


@router.get("/health/db", response_model=schemas.HealthResponse)
def check_db_health(db: Session = Depends(get_db)) -> schemas.HealthResponse:
    """
    Database readiness check.

    Returns 200 if the database answers, 503 if not.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        )
    return schemas.HealthResponse(status="ok", uptime_s=time.time() - _STARTUP_TIME)
