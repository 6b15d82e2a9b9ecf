"""Test activity reports created from events and activity schedules."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app import models, tasks
from app.errors import InternalError
from app.services import engagement, notifications, reports

REPORT = {"title": "合宿レポート", "content": "Three days, twelve songs."}


class RecordingTask:
    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def delay(self, kind: str, payload: dict) -> None:
        self.calls.append((kind, payload))


class BrokenTask:
    def delay(self, kind: str, payload: dict) -> None:
        raise ConnectionError("broker unreachable")


def _participate(client, headers, prefix: str, item_id: int, user: models.User, status: str) -> None:
    response = client.post(f"{prefix}/{item_id}/participate", headers=headers(user), json={"status": status})
    assert response.status_code == 200


def test_report_copies_participating_members(
    client, db: Session, admin: models.User, make_user, make_activity, headers, monkeypatch: pytest.MonkeyPatch
):
    schedule = make_activity(admin)
    going = [make_user() for _ in range(3)]
    not_going = make_user()
    for user in going:
        _participate(client, headers, "/activity-schedules", schedule.id, user, "participating")
    _participate(client, headers, "/activity-schedules", schedule.id, not_going, "not_participating")

    recorder = RecordingTask()
    monkeypatch.setattr(tasks, "send_content_notification", recorder)

    response = client.post(f"/activity-schedules/{schedule.id}/report", headers=headers(admin), json=REPORT)

    assert response.status_code == 201
    body = response.json()
    assert body["activity_schedule_id"] == schedule.id
    assert body["event_id"] is None
    assert {p["user_id"] for p in body["participants"]} == {u.id for u in going}
    assert all(p["status"] == "participating" for p in body["participants"])

    assert recorder.calls == [(notifications.NEW_POST, {"id": body["id"], "title": REPORT["title"], "content": REPORT["content"]})]


def test_notification_enqueue_failure_does_not_affect_report(
    client, db: Session, admin: models.User, make_user, make_activity, headers, monkeypatch: pytest.MonkeyPatch
):
    schedule = make_activity(admin)
    for _ in range(3):
        _participate(client, headers, "/activity-schedules", schedule.id, make_user(), "participating")

    monkeypatch.setattr(tasks, "send_content_notification", BrokenTask())

    response = client.post(f"/activity-schedules/{schedule.id}/report", headers=headers(admin), json=REPORT)

    assert response.status_code == 201
    db.expire_all()
    post = db.get(models.Post, response.json()["id"])
    assert post is not None
    assert len(post.participants) == 3


def test_notification_delivery_failure_does_not_affect_report(
    client, db: Session, admin: models.User, make_event, headers, monkeypatch: pytest.MonkeyPatch
):
    event = make_event(admin)

    def failing_send(*args, **kwargs):
        raise RuntimeError("mail provider down")

    monkeypatch.setattr(notifications, "send_email", failing_send)

    response = client.post(f"/events/{event.id}/report", headers=headers(admin), json=REPORT)

    assert response.status_code == 201
    db.expire_all()
    assert db.query(models.Post).filter_by(event_id=event.id).count() == 1


def test_failed_participant_copy_leaves_no_post(
    client, db: Session, admin: models.User, member: models.User, make_event, headers, monkeypatch: pytest.MonkeyPatch
):
    event = make_event(admin)
    _participate(client, headers, "/events", event.id, member, "participating")

    def broken_copy(db, post, user_ids):
        raise OperationalError("INSERT INTO post_participants", {}, Exception("disk I/O error"))

    monkeypatch.setattr(reports, "_copy_participants", broken_copy)
    recorder = RecordingTask()
    monkeypatch.setattr(tasks, "send_content_notification", recorder)

    response = client.post(f"/events/{event.id}/report", headers=headers(admin), json=REPORT)

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to create report"
    assert "disk" not in response.text

    db.expire_all()
    assert db.query(models.Post).count() == 0
    assert db.query(models.PostParticipant).count() == 0
    assert recorder.calls == []


def test_failed_copy_in_service_raises_internal_error(
    db: Session, admin: models.User, make_activity, monkeypatch: pytest.MonkeyPatch
):
    schedule = make_activity(admin)

    def broken_copy(db, post, user_ids):
        raise RuntimeError("boom")

    monkeypatch.setattr(reports, "_copy_participants", broken_copy)

    with pytest.raises(InternalError):
        reports.create_report_from_source(
            db, engagement.ACTIVITY_SCHEDULE, schedule.id, admin, REPORT["title"], REPORT["content"]
        )
    assert db.query(models.Post).count() == 0


def test_members_cannot_create_reports(client, db: Session, admin: models.User, member: models.User, make_event, headers):
    event = make_event(admin)
    response = client.post(f"/events/{event.id}/report", headers=headers(member), json=REPORT)
    assert response.status_code == 403
    assert db.query(models.Post).count() == 0


def test_report_validation_happens_before_any_write(client, db: Session, admin: models.User, make_event, headers):
    event = make_event(admin)

    blank = client.post(f"/events/{event.id}/report", headers=headers(admin), json={"title": " ", "content": "x"})
    assert blank.status_code == 400

    bad_url = client.post(
        f"/events/{event.id}/report",
        headers=headers(admin),
        json={**REPORT, "youtube_urls": ["https://example.com/video"]},
    )
    assert bad_url.status_code == 400

    missing = client.post("/events/999999/report", headers=headers(admin), json=REPORT)
    assert missing.status_code == 404

    assert db.query(models.Post).count() == 0


def test_reported_event_leaves_the_default_list(client, admin: models.User, member: models.User, make_event, headers):
    reported = make_event(admin, title="Reported")
    open_event = make_event(admin, title="Open")
    client.post(f"/events/{reported.id}/report", headers=headers(admin), json=REPORT)

    listed = client.get("/events", headers=headers(member)).json()
    assert [e["id"] for e in listed] == [open_event.id]

    everything = client.get("/events", headers=headers(member), params={"include_reported": True}).json()
    assert {e["id"] for e in everything} == {reported.id, open_event.id}


def test_report_linkage_cannot_be_changed(client, admin: models.User, make_event, headers):
    event = make_event(admin)
    post = client.post(f"/events/{event.id}/report", headers=headers(admin), json=REPORT).json()

    response = client.patch(
        f"/posts/{post['id']}",
        headers=headers(admin),
        json={"title": "Edited", "event_id": None, "activity_schedule_id": 1},
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Edited"
    assert response.json()["event_id"] == event.id
    assert response.json()["activity_schedule_id"] is None


def test_reported_sources_cannot_be_deleted(
    client, db: Session, admin: models.User, make_event, make_activity, headers
):
    event = make_event(admin)
    schedule = make_activity(admin)
    from_event = client.post(f"/events/{event.id}/report", headers=headers(admin), json=REPORT).json()
    from_schedule = client.post(
        f"/activity-schedules/{schedule.id}/report", headers=headers(admin), json=REPORT
    ).json()

    response = client.delete(f"/events/{event.id}", headers=headers(admin))
    assert response.status_code == 409
    assert response.json()["detail"] == "Event has activity reports and cannot be deleted"

    response = client.delete(f"/activity-schedules/{schedule.id}", headers=headers(admin))
    assert response.status_code == 409
    assert response.json()["detail"] == "Activity schedule has activity reports and cannot be deleted"

    db.expire_all()
    assert db.get(models.Event, event.id) is not None
    assert db.get(models.Post, from_event["id"]).event_id == event.id
    assert db.get(models.Post, from_schedule["id"]).activity_schedule_id == schedule.id
    assert client.get(f"/posts/{from_event['id']}", headers=headers(admin)).json()["event_id"] == event.id


def test_member_whose_event_was_reported_by_someone_else_cannot_be_deleted(
    client, db: Session, site_admin: models.User, admin: models.User, make_user, make_event, headers
):
    organizer = make_user(role=models.ROLE_ADMIN)
    event = make_event(organizer)
    report = client.post(f"/events/{event.id}/report", headers=headers(admin), json=REPORT).json()

    response = client.delete(f"/users/{organizer.id}", headers=headers(site_admin))
    assert response.status_code == 409

    db.expire_all()
    assert db.get(models.User, organizer.id) is not None
    assert db.get(models.Post, report["id"]).event_id == event.id


def test_member_with_own_reported_event_is_deleted_with_both(
    client, db: Session, site_admin: models.User, admin: models.User, make_event, headers
):
    event = make_event(admin)
    client.post(f"/events/{event.id}/report", headers=headers(admin), json=REPORT)

    assert client.delete(f"/users/{admin.id}", headers=headers(site_admin)).status_code == 204

    db.expire_all()
    assert db.query(models.Event).count() == 0
    assert db.query(models.Post).count() == 0


def test_participating_user_ids_skips_declined_rows(client, db: Session, admin: models.User, make_user, make_event, headers):
    event = make_event(admin)
    yes, no = make_user(), make_user()
    _participate(client, headers, "/events", event.id, yes, "participating")
    _participate(client, headers, "/events", event.id, no, "not_participating")

    assert reports.participating_user_ids(db, engagement.EVENT, event.id) == [yes.id]


def test_posts_cannot_be_report_sources(db: Session, admin: models.User, make_post):
    from app.errors import ValidationError

    post = make_post(admin)
    with pytest.raises(ValidationError):
        reports.create_report_from_source(db, engagement.POST, post.id, admin, "t", "c")
