from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

load_dotenv()

from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from .routers import (  # noqa: E402
    activity_schedules,
    auth,
    events,
    messages,
    posts,
    profile,
    schedules,
    system,
    templates,
    uploads,
    users,
)
from .seed import ensure_seed_data  # noqa: E402

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    """Upgrade the schema to head unless the database already sits there."""
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    from .db import engine

    cfg = _alembic_config()
    head = ScriptDirectory.from_config(cfg).get_current_head()
    try:
        with engine.connect() as connection:
            applied = MigrationContext.configure(connection).get_current_heads()
    finally:
        # alembic opens its own connection for the upgrade
        engine.dispose()

    if head in applied:
        logger.info(f"Schema already at {head}")
        return

    logger.info(f"Migrating schema from {applied or 'empty'} to {head}")
    command.upgrade(cfg, head)
    logger.info("Migrations applied")


def run_startup_tasks() -> None:
    """Migrate and seed once per process."""
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        return
    try:
        run_migrations()
        ensure_seed_data()
    except Exception:
        logger.exception("Startup failed; refusing to serve")
        raise
    _STARTUP_COMPLETE = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't start until migrations and seeding complete
    run_startup_tasks()
    logger.info("BOLD API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="BOLD 軽音 API",
    version="1.0.0",
    description="Club membership API: reports, events, activity schedules, date polls and chat",
    lifespan=lifespan,
)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
    if raw.strip() == "*":
        logger.warning("CORS_ORIGINS is '*'; any site can call the API with credentials")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


for module in (
    system,
    auth,
    users,
    profile,
    posts,
    events,
    activity_schedules,
    schedules,
    messages,
    templates,
    uploads,
):
    app.include_router(module.router)


# Served at /vault; the reverse proxy strips the /api prefix
vault_location = os.environ.get("VAULT_LOCATION")
if vault_location:
    vault_path = Path(vault_location)
    vault_path.mkdir(parents=True, exist_ok=True)
    app.mount("/vault", StaticFiles(directory=str(vault_path)), name="vault")
    logger.info(f"Mounted vault at /vault from {vault_location}")
