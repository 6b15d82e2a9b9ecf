"""Test likes, participation and comments on posts, events and activity schedules."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app import models
from app.errors import AlreadyEngaged, NotEngaged, NotFound, ValidationError
from app.services import engagement

CONTENT_PATHS = {
    engagement.POST: "/posts",
    engagement.EVENT: "/events",
    engagement.ACTIVITY_SCHEDULE: "/activity-schedules",
}


@pytest.fixture()
def content_item(request, admin, make_post, make_event, make_activity):
    """One item of the parametrized kind, with the URL prefix of its router."""
    kind = request.param
    factory = {
        engagement.POST: make_post,
        engagement.EVENT: make_event,
        engagement.ACTIVITY_SCHEDULE: make_activity,
    }[kind]
    return kind, CONTENT_PATHS[kind], factory(admin)


ALL_KINDS = [engagement.POST, engagement.EVENT, engagement.ACTIVITY_SCHEDULE]


# ============================================================================
# LIKES
# ============================================================================


def test_like_lifecycle(client, admin: models.User, member: models.User, make_post, headers):
    """Like, like again, unlike, unlike again."""
    post = make_post(admin)
    member_headers = headers(member)

    response = client.post(f"/posts/{post.id}/like", headers=member_headers)
    assert response.status_code == 201
    assert response.json()["item_id"] == post.id
    assert response.json()["user_id"] == member.id
    assert len(client.get(f"/posts/{post.id}/likes", headers=member_headers).json()) == 1

    response = client.post(f"/posts/{post.id}/like", headers=member_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Already liked"
    assert len(client.get(f"/posts/{post.id}/likes", headers=member_headers).json()) == 1

    response = client.delete(f"/posts/{post.id}/like", headers=member_headers)
    assert response.status_code == 204
    assert client.get(f"/posts/{post.id}/likes", headers=member_headers).json() == []

    response = client.delete(f"/posts/{post.id}/like", headers=member_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Not liked yet"


def test_like_sequence_never_duplicates(db: Session, admin: models.User, member: models.User, make_post):
    post = make_post(admin)
    operations = [engagement.add_like, engagement.add_like, engagement.remove_like, engagement.add_like,
                  engagement.remove_like, engagement.remove_like, engagement.add_like]

    for operation in operations:
        try:
            operation(db, post.id, member)
        except (AlreadyEngaged, NotEngaged):
            pass
        count = db.query(models.PostLike).filter_by(post_id=post.id, user_id=member.id).count()
        assert count <= 1

    assert db.query(models.PostLike).filter_by(post_id=post.id, user_id=member.id).count() == 1


def test_like_missing_post(client, member: models.User, headers):
    response = client.post("/posts/424242/like", headers=headers(member))
    assert response.status_code == 404
    assert response.json()["detail"] == "Post not found"


def test_likes_from_different_members_are_independent(
    client, admin: models.User, make_user, make_post, headers
):
    post = make_post(admin)
    first, second = make_user(), make_user()

    assert client.post(f"/posts/{post.id}/like", headers=headers(first)).status_code == 201
    assert client.post(f"/posts/{post.id}/like", headers=headers(second)).status_code == 201

    likes = client.get(f"/posts/{post.id}/likes", headers=headers(first)).json()
    assert {like["user_id"] for like in likes} == {first.id, second.id}


# ============================================================================
# PARTICIPATION
# ============================================================================


@pytest.mark.parametrize("content_item", ALL_KINDS, indirect=True)
def test_participation_is_an_upsert(client, db: Session, member: models.User, content_item, headers):
    kind, prefix, item = content_item
    member_headers = headers(member)

    response = client.post(f"{prefix}/{item.id}/participate", headers=member_headers, json={"status": "participating"})
    assert response.status_code == 200
    first_id = response.json()["id"]
    assert response.json()["status"] == "participating"

    response = client.post(f"{prefix}/{item.id}/participate", headers=member_headers, json={"status": "participating"})
    assert response.status_code == 200
    assert response.json()["id"] == first_id

    response = client.post(
        f"{prefix}/{item.id}/participate", headers=member_headers, json={"status": "not_participating"}
    )
    assert response.status_code == 200
    assert response.json()["id"] == first_id
    assert response.json()["status"] == "not_participating"

    model = engagement.get_kind(kind).participant_model
    db.expire_all()
    assert db.query(model).filter(model.user_id == member.id).count() == 1

    mine = client.get(f"{prefix}/{item.id}/participate", headers=member_headers)
    assert mine.json()["status"] == "not_participating"


def test_event_participation_scenario(client, db: Session, admin: models.User, member: models.User, make_event, headers):
    event = make_event(admin)
    member_headers = headers(member)

    client.post(f"/events/{event.id}/participate", headers=member_headers, json={"status": "participating"})
    client.post(f"/events/{event.id}/participate", headers=member_headers, json={"status": "not_participating"})

    rows = db.query(models.EventParticipant).filter_by(event_id=event.id, user_id=member.id).all()
    assert len(rows) == 1
    assert rows[0].status == "not_participating"


def test_participants_filter_by_status(client, admin: models.User, make_user, make_event, headers):
    event = make_event(admin)
    going, not_going = make_user(), make_user()
    client.post(f"/events/{event.id}/participate", headers=headers(going), json={"status": "participating"})
    client.post(f"/events/{event.id}/participate", headers=headers(not_going), json={"status": "not_participating"})

    everyone = client.get(f"/events/{event.id}/participants", headers=headers(going)).json()
    assert {p["user_id"] for p in everyone} == {going.id, not_going.id}

    participating = client.get(
        f"/events/{event.id}/participants",
        headers=headers(going),
        params={"participation": "participating"},
    ).json()
    assert [p["user_id"] for p in participating] == [going.id]
    assert participating[0]["user"]["name"] == going.name


def test_clear_participation(client, admin: models.User, member: models.User, make_activity, headers):
    schedule = make_activity(admin)
    member_headers = headers(member)
    prefix = f"/activity-schedules/{schedule.id}"

    client.post(f"{prefix}/participate", headers=member_headers, json={"status": "participating"})
    assert client.delete(f"{prefix}/participate", headers=member_headers).status_code == 204
    assert client.get(f"{prefix}/participate", headers=member_headers).json() is None

    response = client.delete(f"{prefix}/participate", headers=member_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Participation not found"


def test_invalid_participation_status(client, admin: models.User, member: models.User, make_event, headers):
    event = make_event(admin)
    response = client.post(f"/events/{event.id}/participate", headers=headers(member), json={"status": "maybe"})
    assert response.status_code == 422


def test_set_participation_rejects_unknown_status_in_service(db: Session, admin: models.User, member: models.User, make_event):
    event = make_event(admin)
    with pytest.raises(ValidationError):
        engagement.set_participation(db, engagement.EVENT, event.id, member, "maybe")
    assert db.query(models.EventParticipant).count() == 0


def test_participation_on_missing_item(db: Session, member: models.User):
    with pytest.raises(NotFound):
        engagement.set_participation(db, engagement.ACTIVITY_SCHEDULE, 999, member, "participating")


# ============================================================================
# COMMENTS
# ============================================================================


@pytest.mark.parametrize("content_item", ALL_KINDS, indirect=True)
def test_comments_only_grow_in_order(client, make_user, content_item, headers):
    kind, prefix, item = content_item
    authors = [make_user(), make_user(), make_user()]

    bodies = []
    for i, author in enumerate(authors * 2):
        body = f"comment {i}"
        bodies.append(body)
        response = client.post(f"{prefix}/{item.id}/comments", headers=headers(author), json={"content": body})
        assert response.status_code == 201
        assert response.json()["item_id"] == item.id

        listed = client.get(f"{prefix}/{item.id}/comments", headers=headers(author)).json()
        assert [c["content"] for c in listed] == bodies


def test_comment_routes_are_append_only(client, admin: models.User, member: models.User, make_post, headers):
    post = make_post(admin)
    created = client.post(f"/posts/{post.id}/comments", headers=headers(member), json={"content": "nice"}).json()

    assert client.put(f"/posts/{post.id}/comments", headers=headers(admin), json={"content": "x"}).status_code == 405
    assert client.delete(f"/posts/{post.id}/comments", headers=headers(admin)).status_code == 405
    assert client.delete(f"/posts/{post.id}/comments/{created['id']}", headers=headers(admin)).status_code == 404

    listed = client.get(f"/posts/{post.id}/comments", headers=headers(member)).json()
    assert [c["content"] for c in listed] == ["nice"]


def test_blank_comment_is_rejected(client, db: Session, admin: models.User, member: models.User, make_post, headers):
    post = make_post(admin)
    response = client.post(f"/posts/{post.id}/comments", headers=headers(member), json={"content": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Comment must not be empty"
    assert db.query(models.Comment).count() == 0


def test_comment_is_stripped(client, admin: models.User, member: models.User, make_event, headers):
    event = make_event(admin)
    response = client.post(f"/events/{event.id}/comments", headers=headers(member), json={"content": "  楽しみ!  "})
    assert response.json()["content"] == "楽しみ!"
    assert response.json()["user"]["id"] == member.id


def test_unknown_kind_is_a_validation_error():
    with pytest.raises(ValidationError):
        engagement.get_kind("playlist")


# ============================================================================
# CASCADES
# ============================================================================


def test_deleting_a_post_removes_its_ledger(client, db: Session, admin: models.User, member: models.User, make_post, headers):
    post = make_post(admin)
    member_headers = headers(member)
    client.post(f"/posts/{post.id}/like", headers=member_headers)
    client.post(f"/posts/{post.id}/participate", headers=member_headers, json={"status": "participating"})
    client.post(f"/posts/{post.id}/comments", headers=member_headers, json={"content": "great"})

    assert client.delete(f"/posts/{post.id}", headers=headers(admin)).status_code == 204

    db.expire_all()
    assert db.query(models.PostLike).count() == 0
    assert db.query(models.PostParticipant).count() == 0
    assert db.query(models.Comment).count() == 0


def test_deleting_an_event_removes_its_ledger(client, db: Session, admin: models.User, member: models.User, make_event, headers):
    event = make_event(admin)
    member_headers = headers(member)
    client.post(f"/events/{event.id}/participate", headers=member_headers, json={"status": "participating"})
    client.post(f"/events/{event.id}/comments", headers=member_headers, json={"content": "行きます"})

    assert client.delete(f"/events/{event.id}", headers=headers(admin)).status_code == 204

    db.expire_all()
    assert db.query(models.EventParticipant).count() == 0
    assert db.query(models.EventComment).count() == 0
