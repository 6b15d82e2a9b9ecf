"""Test authentication and identity resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy.orm import Session

from app import models
from app.auth import (
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
    create_access_token,
    create_refresh_token,
    resolve_principal,
)
from app.routers import auth as auth_router
from app.services import email_verification, password_reset


class _Credentials:
    def __init__(self, token: str):
        self.credentials = token


def test_create_access_token_carries_user_key_and_role(member: models.User):
    token = create_access_token(member)
    payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])

    assert payload["user_id"] == str(member.user_key)
    assert payload["role"] == "member"
    assert payload["type"] == "access"


def test_resolve_principal_returns_none_instead_of_raising(db: Session, member: models.User):
    assert resolve_principal(None, db) is None
    assert resolve_principal(_Credentials("not-a-jwt"), db) is None

    expired = create_access_token(member, expires_in_seconds=-10)
    assert resolve_principal(_Credentials(expired), db) is None

    wrong_type = jwt.encode(
        {"user_id": str(member.user_key), "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        JWT_SECRET_KEY,
        algorithm=JWT_ALGORITHM,
    )
    assert resolve_principal(_Credentials(wrong_type), db) is None

    resolved = resolve_principal(_Credentials(create_access_token(member)), db)
    assert resolved is not None
    assert resolved.id == member.id


def test_token_for_deleted_user_is_unauthenticated(client, db: Session, member: models.User, headers):
    member_headers = headers(member)
    db.delete(member)
    db.commit()

    response = client.get("/auth/me", headers=member_headers)
    assert response.status_code == 401


def test_protected_route_requires_token(client):
    response = client.get("/posts")
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_role_is_read_fresh_on_every_request(client, db: Session, admin: models.User, headers):
    """A token minted while admin stops granting admin rights after a demotion."""
    admin_headers = headers(admin)

    first = client.post("/posts", headers=admin_headers, json={"title": "First", "content": "ok"})
    assert first.status_code == 201

    admin.role = models.ROLE_MEMBER
    db.commit()

    second = client.post("/posts", headers=admin_headers, json={"title": "Second", "content": "nope"})
    assert second.status_code == 403

    me = client.get("/auth/me", headers=admin_headers)
    assert me.json()["user"]["role"] == "member"


def test_register_verify_and_login(client, db: Session, monkeypatch: pytest.MonkeyPatch):
    sent: dict[str, str] = {}

    def fake_send(to_email: str, token: str, name: str | None = None):
        sent["to"] = to_email
        sent["token"] = token
        return {"id": "test"}

    monkeypatch.setattr(email_verification, "send_verification_email", fake_send)

    response = client.post(
        "/auth/register",
        json={"name": "Aoi", "email": "Aoi@Example.com", "password": "guitar-solo-1"},
    )
    assert response.status_code == 201
    assert response.json()["email"] == "aoi@example.com"
    assert sent["to"] == "aoi@example.com"

    # Unverified accounts cannot log in with a password
    login = client.post("/auth/login", json={"email": "aoi@example.com", "password": "guitar-solo-1"})
    assert login.status_code == 403

    verify = client.get("/auth/verify-email", params={"token": sent["token"]})
    assert verify.status_code == 200
    assert verify.json()["verified"] is True

    # Tokens are single use
    again = client.get("/auth/verify-email", params={"token": sent["token"]})
    assert again.status_code == 400

    login = client.post("/auth/login", json={"email": "aoi@example.com", "password": "guitar-solo-1"})
    assert login.status_code == 200
    body = login.json()
    assert body["role"] == "member"
    assert body["refresh_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "aoi@example.com"


def test_register_duplicate_email_conflicts(client, make_user):
    make_user(email="taken@example.com")
    response = client.post(
        "/auth/register",
        json={"name": "Someone", "email": "TAKEN@example.com", "password": "long-enough"},
    )
    assert response.status_code == 409


def test_register_rejects_blank_name(client):
    response = client.post(
        "/auth/register",
        json={"name": "   ", "email": "blank@example.com", "password": "long-enough"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Name must not be empty"


def test_login_with_wrong_password(client, make_user):
    make_user(email="drums@example.com", password="correct-horse")
    response = client.post("/auth/login", json={"email": "drums@example.com", "password": "wrong-horse"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_refresh_reissues_access_token_with_current_role(client, db: Session, member: models.User):
    refresh = create_refresh_token(member, db)
    member.role = models.ROLE_ADMIN
    db.commit()

    response = client.post("/auth/refresh", json={"refresh_token": refresh})
    assert response.status_code == 200
    assert response.json()["role"] == "admin"
    assert response.json()["refresh_token"] == refresh


def test_logout_revokes_refresh_token(client, db: Session, member: models.User, headers):
    refresh = create_refresh_token(member, db)

    response = client.post("/auth/logout", headers=headers(member), json={"refresh_token": refresh})
    assert response.status_code == 204

    response = client.post("/auth/refresh", json={"refresh_token": refresh})
    assert response.status_code == 401


def test_logout_works_with_an_expired_session(client, db: Session, member: models.User):
    refresh = create_refresh_token(member, db)
    expired = create_access_token(member, expires_in_seconds=-10)

    response = client.post(
        "/auth/logout",
        headers={"Authorization": f"Bearer {expired}"},
        json={"refresh_token": refresh},
    )
    assert response.status_code == 204
    assert client.post("/auth/refresh", json={"refresh_token": refresh}).status_code == 401


def test_password_reset_flow(client, make_user, monkeypatch: pytest.MonkeyPatch):
    make_user(email="bass@example.com", password="old-password")
    sent: dict[str, str] = {}

    def fake_send(to_email: str, token: str, name: str | None = None):
        sent["token"] = token
        return {"id": "test"}

    monkeypatch.setattr(password_reset, "send_password_reset_email", fake_send)

    response = client.post("/auth/forgot-password", json={"email": "bass@example.com"})
    assert response.status_code == 200
    assert "token" in sent

    response = client.post(
        "/auth/reset-password",
        json={"token": sent["token"], "new_password": "new-password"},
    )
    assert response.status_code == 200

    assert client.post("/auth/login", json={"email": "bass@example.com", "password": "old-password"}).status_code == 401
    assert client.post("/auth/login", json={"email": "bass@example.com", "password": "new-password"}).status_code == 200

    reused = client.post("/auth/reset-password", json={"token": sent["token"], "new_password": "another-one"})
    assert reused.status_code == 400


def test_forgot_password_for_unknown_email_still_succeeds(client):
    response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 200


def test_google_login_redirect_sets_state_cookie(client, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(auth_router, "GOOGLE_CLIENT_ID", "test-client-id")

    response = client.get("/auth/google/login", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"].startswith(auth_router.GOOGLE_AUTHORIZE_URL)
    set_cookie = response.headers.get("set-cookie", "")
    assert f"{auth_router.OAUTH_STATE_COOKIE}=" in set_cookie
    assert "HttpOnly" in set_cookie


def test_google_callback_rejects_mismatched_state(client, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(auth_router, "GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setattr(auth_router, "GOOGLE_CLIENT_SECRET", "test-client-secret")

    def must_not_be_called(code: str) -> dict:
        raise AssertionError("Google must not be contacted with a bad state")

    monkeypatch.setattr(auth_router, "_fetch_google_profile", must_not_be_called)

    client.cookies.set(auth_router.OAUTH_STATE_COOKIE, "expected")
    response = client.get(
        "/auth/google/callback",
        params={"code": "abc", "state": "different"},
        follow_redirects=False,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid OAuth state"


def test_google_callback_links_existing_account(client, db: Session, make_user, monkeypatch: pytest.MonkeyPatch):
    user = make_user(email="keys@example.com", verified=False)
    monkeypatch.setattr(auth_router, "GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setattr(auth_router, "GOOGLE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setattr(
        auth_router,
        "_fetch_google_profile",
        lambda code: {"sub": "google-123", "email": "Keys@example.com", "email_verified": True, "name": "Keys"},
    )

    client.cookies.set(auth_router.OAUTH_STATE_COOKIE, "state-1")
    response = client.get(
        "/auth/google/callback",
        params={"code": "abc", "state": "state-1"},
        follow_redirects=False,
    )

    assert response.status_code == 307
    assert "#token=" in response.headers["location"]

    db.expire_all()
    identity = (
        db.query(models.AuthIdentity)
        .filter(models.AuthIdentity.provider == "google", models.AuthIdentity.provider_user_id == "google-123")
        .one()
    )
    assert identity.user_id == user.id
    assert db.get(models.User, user.id).email_verified is True
    assert db.query(models.User).count() == 1
