from __future__ import annotations

import os
import tempfile
from typing import Callable, Generator

_TEST_DIR = tempfile.mkdtemp(prefix="bold-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'bold.db')}"
os.environ["VAULT_LOCATION"] = os.path.join(_TEST_DIR, "vault")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.pop("RESEND_API_KEY", None)

import pytest  # noqa: E402
from dotenv import load_dotenv  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app import models  # noqa: E402
from app.auth import create_access_token  # noqa: E402
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.services.auth_identities import create_password_identity  # noqa: E402

load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def client() -> TestClient:
    # Not entered as a context manager: the schema comes from create_all,
    # not from the startup migrations.
    return TestClient(app)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    counter = {"n": 0}

    def _make_user(
        role: str = models.ROLE_MEMBER,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
        verified: bool = True,
        email_notifications: bool = True,
    ) -> models.User:
        counter["n"] += 1
        n = counter["n"]
        user = models.User(
            name=name or f"{role}-{n}",
            email=email or f"{role}{n}@example.com",
            email_verified=verified,
            role=role,
            email_notifications=email_notifications,
        )
        db.add(user)
        db.flush()
        if password:
            create_password_identity(db, user.id, user.email, password)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def member(make_user) -> models.User:
    return make_user(models.ROLE_MEMBER)


@pytest.fixture()
def admin(make_user) -> models.User:
    return make_user(models.ROLE_ADMIN)


@pytest.fixture()
def site_admin(make_user) -> models.User:
    return make_user(models.ROLE_SITE_ADMIN)


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture()
def headers() -> Callable[[models.User], dict[str, str]]:
    return auth_headers


@pytest.fixture()
def make_post(db: Session) -> Callable[..., models.Post]:
    def _make_post(author: models.User, title: str = "Spring live report", **fields) -> models.Post:
        post = models.Post(
            user_id=author.id,
            title=title,
            content=fields.pop("content", "We played five songs."),
            youtube_urls=fields.pop("youtube_urls", []),
            images=fields.pop("images", []),
            **fields,
        )
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make_post


@pytest.fixture()
def make_event(db: Session) -> Callable[..., models.Event]:
    def _make_event(author: models.User, title: str = "Summer camp", **fields) -> models.Event:
        event = models.Event(
            user_id=author.id,
            title=title,
            content=fields.pop("content", "Three days of rehearsal."),
            **fields,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _make_event


@pytest.fixture()
def make_activity(db: Session) -> Callable[..., models.ActivitySchedule]:
    from datetime import datetime

    def _make_activity(author: models.User, title: str = "Studio session", **fields) -> models.ActivitySchedule:
        schedule = models.ActivitySchedule(
            user_id=author.id,
            title=title,
            content=fields.pop("content", "Band practice at the studio."),
            date=fields.pop("date", datetime(2026, 11, 1, 18, 0)),
            **fields,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _make_activity
