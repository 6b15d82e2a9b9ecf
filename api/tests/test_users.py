"""Test the authorization guard and member management."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app import models
from app.auth import is_admin, is_site_admin, require_admin, require_site_admin
from app.errors import ForbiddenError


@pytest.mark.parametrize(
    "role, admin, site_admin",
    [
        (models.ROLE_MEMBER, False, False),
        (models.ROLE_ADMIN, True, False),
        (models.ROLE_SITE_ADMIN, True, True),
    ],
)
def test_role_predicates(make_user, role: str, admin: bool, site_admin: bool):
    user = make_user(role)
    assert is_admin(user) is admin
    assert is_site_admin(user) is site_admin


def test_predicates_reject_anonymous():
    assert is_admin(None) is False
    assert is_site_admin(None) is False


def test_require_helpers_raise_forbidden(member: models.User, admin: models.User):
    with pytest.raises(ForbiddenError) as exc_info:
        require_admin(member)
    assert exc_info.value.status_code == 403

    require_admin(admin)
    with pytest.raises(ForbiddenError):
        require_site_admin(admin)


def test_site_admin_cannot_change_own_role(client, site_admin: models.User, headers):
    response = client.patch(f"/users/{site_admin.id}", headers=headers(site_admin), json={"role": "admin"})
    assert response.status_code == 403
    assert response.json()["detail"] == "You cannot perform this action on your own account"


def test_site_admin_cannot_delete_self(client, db: Session, site_admin: models.User, headers):
    response = client.delete(f"/users/{site_admin.id}", headers=headers(site_admin))
    assert response.status_code == 403

    db.expire_all()
    assert db.get(models.User, site_admin.id) is not None


def test_self_check_applies_before_role_check(client, member: models.User, headers):
    """Even a member targeting their own account gets the self-action error."""
    response = client.patch(f"/users/{member.id}", headers=headers(member), json={"role": "site_admin"})
    assert response.status_code == 403
    assert response.json()["detail"] == "You cannot perform this action on your own account"


def test_site_admin_changes_another_members_role(client, site_admin: models.User, member: models.User, headers):
    response = client.patch(f"/users/{member.id}", headers=headers(site_admin), json={"role": "admin"})
    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    fetched = client.get(f"/users/{member.id}", headers=headers(site_admin))
    assert fetched.json()["role"] == "admin"


def test_admin_cannot_change_roles(client, admin: models.User, member: models.User, headers):
    response = client.patch(f"/users/{member.id}", headers=headers(admin), json={"role": "admin"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Site admin role required"


def test_change_role_of_unknown_user(client, site_admin: models.User, headers):
    response = client.patch("/users/999999", headers=headers(site_admin), json={"role": "admin"})
    assert response.status_code == 404


def test_invalid_role_is_rejected(client, site_admin: models.User, member: models.User, headers):
    response = client.patch(f"/users/{member.id}", headers=headers(site_admin), json={"role": "owner"})
    assert response.status_code == 422


def test_user_list_hides_roles_from_non_site_admins(client, site_admin: models.User, member: models.User, headers):
    as_member = client.get("/users", headers=headers(member)).json()
    assert {u["id"] for u in as_member} == {site_admin.id, member.id}
    assert all("role" not in u for u in as_member)

    as_site_admin = client.get("/users", headers=headers(site_admin)).json()
    assert {u["role"] for u in as_site_admin} == {"site_admin", "member"}


def test_deleting_a_member_removes_their_engagement(
    client, db: Session, site_admin: models.User, admin: models.User, member: models.User, make_post, make_event, headers
):
    post = make_post(admin)
    event = make_event(admin)
    member_headers = headers(member)

    assert client.post(f"/posts/{post.id}/like", headers=member_headers).status_code == 201
    assert client.post(f"/posts/{post.id}/comments", headers=member_headers, json={"content": "最高!"}).status_code == 201
    assert client.post(
        f"/events/{event.id}/participate", headers=member_headers, json={"status": "participating"}
    ).status_code == 200
    assert client.post("/messages", headers=member_headers, json={"content": "hello"}).status_code == 201

    response = client.delete(f"/users/{member.id}", headers=headers(site_admin))
    assert response.status_code == 204

    db.expire_all()
    assert db.query(models.PostLike).count() == 0
    assert db.query(models.Comment).count() == 0
    assert db.query(models.EventParticipant).count() == 0
    assert db.query(models.Message).count() == 0
    assert db.get(models.Post, post.id) is not None


def test_deleting_an_author_removes_their_content(
    client, db: Session, site_admin: models.User, admin: models.User, member: models.User, make_post, headers
):
    post = make_post(admin)
    client.post(f"/posts/{post.id}/like", headers=headers(member))

    response = client.delete(f"/users/{admin.id}", headers=headers(site_admin))
    assert response.status_code == 204

    db.expire_all()
    assert db.query(models.Post).count() == 0
    assert db.query(models.PostLike).count() == 0
    assert db.get(models.User, member.id) is not None


def test_profile_update(client, member: models.User, headers):
    response = client.patch(
        "/profile",
        headers=headers(member),
        json={"name": "  Hikari  ", "email_notifications": False},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Hikari"
    assert body["email_notifications"] is False


def test_seed_creates_and_promotes_site_admin(db: Session, make_user):
    from app.seed import ensure_site_admin
    from app.services.auth_identities import find_identity_by_password

    created = ensure_site_admin(db, " Owner@Example.com ", "first-password")
    assert created.role == models.ROLE_SITE_ADMIN
    assert created.email == "owner@example.com"
    assert created.email_verified is True

    # Running again never replaces an existing password
    again = ensure_site_admin(db, "owner@example.com", "second-password")
    assert again.id == created.id
    assert find_identity_by_password(db, "owner@example.com", "first-password") is not None
    assert find_identity_by_password(db, "owner@example.com", "second-password") is None

    existing = make_user(email="lead@example.com")
    promoted = ensure_site_admin(db, "lead@example.com", "lead-password")
    assert promoted.id == existing.id
    assert promoted.role == models.ROLE_SITE_ADMIN
