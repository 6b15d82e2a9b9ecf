from __future__ import annotations

import os
import sys

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.db import DATABASE_URL, engine
from app.tasks import celery_app

# Tables the notification and cleanup tasks read
REQUIRED_TABLES = {
    "users",
    "refresh_tokens",
    "email_verification_tokens",
    "password_reset_tokens",
}


def check_database() -> bool:
    """Print what the worker will connect to and whether its tables exist."""
    print("=" * 60)
    print("Connecting to database...")
    print(f"Database URL: {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else DATABASE_URL}")
    print("=" * 60)

    try:
        table_names = set(inspect(engine).get_table_names())
    except SQLAlchemyError as e:
        print(f"\n❌ Error connecting to database: {e}\n")
        return False

    missing = sorted(REQUIRED_TABLES - table_names)
    if missing:
        print(f"\n❌ Missing tables (run migrations first): {', '.join(missing)}\n")
        return False

    print(f"\nFound {len(table_names)} table(s); notification tables present.\n")
    return True


if __name__ == "__main__":
    if not check_database() and os.getenv("WORKER_REQUIRE_DB", "true").lower() == "true":
        sys.exit(1)

    # Embedded beat runs the daily token cleanup
    argv = ["worker", "--loglevel=info"]
    if os.getenv("WORKER_EMBED_BEAT", "true").lower() == "true":
        argv.append("--beat")
    celery_app.worker_main(argv)
